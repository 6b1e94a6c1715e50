"""Batch index planning.

Turns configurations of uneven size into a flat list of fixed-size batches.
A batch never spans two configurations: it is a contiguous range of the
expanded (one example per particle) samples of a single configuration.
"""
import logging
from typing import Dict, List, Mapping, NamedTuple, Sequence, Tuple

import numpy as np

from objdata.dataloader.errors import AlignmentError, DivisibilityError
from objdata.dataloader.store import ConfigRecord

logger = logging.getLogger(__name__)


class BatchDescriptor(NamedTuple):
    config: str
    start: int
    end: int  # inclusive

    @property
    def size(self) -> int:
        return self.end - self.start + 1


def count_examples(dataset: Mapping[str, ConfigRecord],
                   configs: Sequence[str],
                   batch_size: int) -> Tuple[int, int, List[int]]:
    """Returns ``(total_samples, num_batches, config_sizes)``.

    ``config_sizes[i]`` is the expanded sample count of ``configs[i]``.
    """
    config_sizes = [dataset[config].num_samples for config in configs]
    total_samples = sum(config_sizes)
    if total_samples % batch_size != 0:
        raise DivisibilityError(f"Total samples: {total_samples} batch size: {batch_size}")
    return total_samples, total_samples // batch_size, config_sizes


def check_alignment(configs: Sequence[str],
                    config_sizes: Sequence[int],
                    batch_size: int,
                    strict: bool = True) -> Dict[str, int]:
    """Find configurations whose trailing samples no batch will cover.

    Returns a mapping of configuration -> number of uncovered samples. Raises
    AlignmentError instead when ``strict`` is set and anything is uncovered.
    """
    unaligned = {c: size % batch_size for c, size in zip(configs, config_sizes) if size % batch_size}
    if unaligned and strict:
        raise AlignmentError(
            f"Configurations not aligned to batch size {batch_size} "
            f"(config: leftover samples): {unaligned}"
        )
    for config, leftover in unaligned.items():
        logger.warning(f"{config}: last {leftover} samples are never batched")
    return unaligned


def compute_batches(configs: Sequence[str],
                    config_sizes: Sequence[int],
                    batch_size: int,
                    num_batches: int) -> List[BatchDescriptor]:
    if num_batches and not any(size >= batch_size for size in config_sizes):
        raise DivisibilityError(f"No configuration holds a full batch of {batch_size} samples")

    num_configs = len(configs)
    current_config = 0
    current_batch_in_config = 0  # end (exclusive) of the last batch in the current config
    batchlist = []
    while len(batchlist) < num_batches:
        current_batch_in_config += batch_size
        # move on (wrapping around) until the batch fits into a config
        while current_batch_in_config > config_sizes[current_config]:
            current_config = (current_config + 1) % num_configs
            current_batch_in_config = batch_size

        batchlist.append(BatchDescriptor(configs[current_config],
                                         current_batch_in_config - batch_size,
                                         current_batch_in_config - 1))

    assert len(batchlist) == num_batches
    return batchlist


def check_coverage(batchlist: Sequence[BatchDescriptor],
                   configs: Sequence[str],
                   config_sizes: Sequence[int]) -> Dict[str, np.ndarray]:
    """Count how many batches cover each expanded sample of each configuration."""
    coverage = {c: np.zeros(size, dtype=np.int64) for c, size in zip(configs, config_sizes)}
    for batch in batchlist:
        coverage[batch.config][batch.start:batch.end + 1] += 1
    return coverage


def plan_batches(dataset: Mapping[str, ConfigRecord],
                 configs: Sequence[str],
                 batch_size: int,
                 strict: bool = True):
    """Count, check and plan in one go.

    Returns ``(batchlist, total_samples, config_sizes)``.
    """
    total_samples, num_batches, config_sizes = count_examples(dataset, configs, batch_size)
    check_alignment(configs, config_sizes, batch_size, strict=strict)
    batchlist = compute_batches(configs, config_sizes, batch_size, num_batches)
    return batchlist, total_samples, config_sizes
