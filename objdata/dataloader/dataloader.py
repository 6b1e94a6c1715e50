"""Batch loader for the object model.

Given a dataset of configurations (worlds with different numbers of
particles and goos), the loader plans fixed-size batches once at
construction and then serves one batch per call, sequentially, uniformly at
random or by priority.

    loader = ObjectDataLoader(LoaderConfig(dataset_name='trainset',
                                           dataset_folder='data',
                                           specified_configs=['worldm1', 'worldm2_np=3_ng=3'],
                                           batch_size=100))
    this_x, context_x, y, mask, config, start, end, context_future = loader.next_batch()
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

import torch

from objdata.config import LoaderConfig, load_config
from objdata.dataloader.assembler import Batch, ExampleAssembler
from objdata.dataloader.base import BaseBatchLoader
from objdata.dataloader.configs import resolve_configs
from objdata.dataloader.planner import plan_batches
from objdata.dataloader.priority_sampler import PrioritySampler
from objdata.dataloader.sampling import SamplingMode, SamplingState, make_access_order, select_batch_id
from objdata.dataloader.store import ConfigRecord, load_data
from objdata.utils import parse_device, release_memory

logger = logging.getLogger(__name__)


class ObjectDataLoader(BaseBatchLoader):
    """Plans and serves per-particle batches over a set of configurations.

    The configuration order, the batch list and the access order are fixed
    at construction. Only the sampling state changes afterwards.
    """

    def __init__(self, config: LoaderConfig, dataset: Optional[Dict[str, ConfigRecord]] = None):
        super().__init__()
        self.config = config
        self.batch_size = config.batch_size
        self.device = parse_device(config.device)
        self.generator = None
        if config.seed is not None:
            self.generator = torch.Generator().manual_seed(config.seed)

        self.load(dataset)
        self.configs = list(self.raw.keys())

        self.specified_configs = resolve_configs(config.specified_configs, self.configs, config.shuffle)
        self.num_configs = len(self.specified_configs)

        self.build_index()
        self.num_batches = len(self.index)

        self.state = SamplingState(make_access_order(self.num_batches, config.shuffle, self.generator))
        self.priority_sampler = PrioritySampler.create(self.num_batches)
        self.assembler = ExampleAssembler(config.num_past, config.window_size,
                                          relative=config.relative, device=self.device)

        logger.info(
            f"{self.num_configs} configurations, {self.total_samples} samples, "
            f"{self.num_batches} batches of {self.batch_size} (shuffle={config.shuffle})"
        )
        release_memory(self.device)

    def load(self, dataset: Optional[Dict[str, ConfigRecord]] = None):
        if dataset is None:
            dataset = load_data(self.config.dataset_name, self.config.dataset_folder)
        self.raw = dataset

    def build_index(self):
        self.index, self.total_samples, self.config_sizes = plan_batches(
            self.raw, self.specified_configs, self.batch_size, strict=self.config.strict_alignment
        )

    @property
    def batchlist(self):
        return self.index

    @property
    def current_sampled_id(self) -> Optional[int]:
        return self.state.current_sampled_id

    @property
    def current_batch(self) -> int:
        return self.state.current_batch

    def next_config(self, config: str, start: int, end: int) -> Batch:
        return self.assembler.next_config(self.raw[config], config, start, end)

    def sample_batch_id(self, batch_id: int) -> Batch:
        self.state.current_sampled_id = batch_id
        config, start, end = self.index[batch_id]
        logger.debug(f"batch id {batch_id}: {config} [{start}:{end}]")
        return self.next_config(config, start, end)

    def _sample(self, mode: SamplingMode, power: float = 1.0) -> Batch:
        batch_id = select_batch_id(mode, self.state, self.priority_sampler, power, generator=self.generator)
        return self.sample_batch_id(batch_id)

    def sample_sequential_batch(self) -> Batch:
        return self._sample(SamplingMode.SEQUENTIAL)

    def sample_random_batch(self) -> Batch:
        return self._sample(SamplingMode.RANDOM)

    def sample_priority_batch(self, power: float = None) -> Batch:
        if power is None:
            power = self.config.priority_power
        return self._sample(SamplingMode.PRIORITY, power)

    def next_batch(self) -> Batch:
        """Sample with the mode set in the loader config."""
        return self._sample(SamplingMode(self.config.sampling), self.config.priority_power)

    def update_priority(self, weight: float, batch_id: int = None):
        """Report a weight (e.g. the loss) for the last sampled batch."""
        if batch_id is None:
            batch_id = self.state.current_sampled_id
        if batch_id is None:
            raise RuntimeError("No batch has been sampled yet")
        self.priority_sampler.update_batch_weight(batch_id, weight)

    @classmethod
    def from_config_file(cls, path: str | Path, section: str = 'loader') -> 'ObjectDataLoader':
        cfg = load_config(path)
        if not cfg:
            raise FileNotFoundError(f"Config not found or empty: {path}")
        return cls(LoaderConfig.from_dict(cfg.get(section, {})))
