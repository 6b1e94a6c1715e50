"""Choose which planned batch to serve next."""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import torch

from objdata.dataloader.priority_sampler import PrioritySampler

logger = logging.getLogger(__name__)


class SamplingMode(str, Enum):
    SEQUENTIAL = 'sequential'
    RANDOM = 'random'
    PRIORITY = 'priority'


@dataclass
class SamplingState:
    """Mutable cursor of one loader. Not safe to share between callers."""
    access_order: torch.Tensor  # permutation (or identity) over batch ids
    current_batch: int = -1  # position in access_order, -1 before the first call
    current_sampled_id: Optional[int] = None

    @property
    def num_batches(self) -> int:
        return self.access_order.numel()


def make_access_order(num_batches: int, shuffle: bool, generator: torch.Generator = None) -> torch.Tensor:
    if shuffle:
        return torch.randperm(num_batches, generator=generator)
    return torch.arange(num_batches)


def sequential_id(state: SamplingState) -> int:
    state.current_batch = (state.current_batch + 1) % state.num_batches
    return int(state.access_order[state.current_batch])


def random_id(state: SamplingState, generator: torch.Generator = None) -> int:
    return int(torch.randint(state.num_batches, (1,), generator=generator))


def priority_id(state: SamplingState, sampler: PrioritySampler, power: float,
                generator: torch.Generator = None) -> int:
    # weights are only meaningful once every batch has been seen
    if sampler.epoch_count > 1:
        return sampler.sample(power, generator=generator)
    return sequential_id(state)


def select_batch_id(mode: SamplingMode,
                    state: SamplingState,
                    sampler: PrioritySampler = None,
                    power: float = 1.0,
                    generator: torch.Generator = None) -> int:
    """Pick the next batch id and record it as ``state.current_sampled_id``."""
    mode = SamplingMode(mode)
    if mode is SamplingMode.SEQUENTIAL:
        batch_id = sequential_id(state)
    elif mode is SamplingMode.RANDOM:
        batch_id = random_id(state, generator=generator)
    else:
        if sampler is None:
            raise ValueError("Priority sampling needs a PrioritySampler")
        batch_id = priority_id(state, sampler, power, generator=generator)

    state.current_sampled_id = batch_id
    logger.debug(f"[{mode.value}] cursor {state.current_batch} -> batch id {batch_id}")
    return batch_id
