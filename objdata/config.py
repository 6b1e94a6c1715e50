from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional

import yaml


@dataclass
class LoaderConfig:
    """Configuration for ObjectDataLoader"""
    # Data
    dataset_name: str = 'trainset'          # file stem inside dataset_folder
    dataset_folder: str = 'data'
    specified_configs: List[str] = field(default_factory=list)  # empty = all

    # Batching
    batch_size: int = 100
    shuffle: bool = False
    strict_alignment: bool = True   # fail if a config's size is not a multiple of batch_size

    # Windows
    num_past: int = 2
    window_size: int = 4
    relative: bool = True           # targets relative to the last past frame

    # Sampling
    sampling: str = 'sequential'    # "sequential", "random" or "priority"
    priority_power: float = 1.0

    device: str = 'cpu'             # "cpu", "cuda", "mps" or "auto"
    seed: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.specified_configs, str):
            self.specified_configs = [self.specified_configs] if self.specified_configs else []
        self.specified_configs = list(self.specified_configs or [])
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if not 0 < self.num_past < self.window_size:
            raise ValueError(f"Need 0 < num_past < window_size, got {self.num_past} and {self.window_size}")
        if self.sampling not in ('sequential', 'random', 'priority'):
            raise ValueError(f"Unknown sampling mode: {self.sampling}")

    @property
    def num_future(self) -> int:
        return self.window_size - self.num_past

    @classmethod
    def from_dict(cls, cfg: dict) -> 'LoaderConfig':
        known = {f.name for f in fields(cls)}
        unknown = set(cfg) - known
        if unknown:
            raise KeyError(f"Unknown loader options: {sorted(unknown)}")
        return cls(**cfg)


def load_config(path):
    if path is None: return {}
    p = Path(path)
    if not p.exists(): return {}
    return yaml.safe_load(p.read_text()) or {}
