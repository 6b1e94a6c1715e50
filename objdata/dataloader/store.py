"""Dataset store for object-model trajectories.

The data for each configuration is spread out across three keys. Let
``<config>`` be the configuration name:

- ``<config>particles``: (num_examples, num_particles, windowsize, 8)
  last axis ``[px, py, vx, vy, (onehot mass)]``
- ``<config>goos``: (num_examples, num_goos, 8) or a placeholder when the
  configuration has no goos; last axis ``[left, top, right, bottom,
  (onehot goostrength)]``
- ``<config>mask``: (10,) with a single one marking the number of real
  context objects

Both HDF5 (``.h5``) and numpy (``.npz``) archives with this layout are
supported.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import h5py
import numpy as np
import torch

logger = logging.getLogger(__name__)

SUBKEYS = ('particles', 'goos', 'mask')


@dataclass(frozen=True)
class ConfigRecord:
    """In-memory tensors of one configuration. ``goos`` is None when there are no goos."""
    particles: torch.Tensor
    goos: Optional[torch.Tensor]
    mask: torch.Tensor

    @property
    def num_examples(self) -> int:
        return self.particles.size(0)

    @property
    def num_particles(self) -> int:
        return self.particles.size(1)

    @property
    def window_size(self) -> int:
        return self.particles.size(2)

    @property
    def num_goos(self) -> int:
        return 0 if self.goos is None else self.goos.size(1)

    @property
    def num_samples(self) -> int:
        # one sample per (example, particle) pair
        return self.num_examples * self.num_particles


def split_key(key: str):
    """Split a flat archive key into ``(config, subkey)``."""
    matches = [sk for sk in SUBKEYS if key.endswith(sk)]
    if len(matches) != 1:
        raise ValueError(f"Key '{key}' does not end with exactly one of {SUBKEYS}")
    subkey = matches[0]
    config = key[:-len(subkey)]
    if not config:
        raise ValueError(f"Key '{key}' has no configuration prefix")
    return config, subkey


def to_record(config: str, arrays: Dict[str, np.ndarray]) -> ConfigRecord:
    missing = [sk for sk in SUBKEYS if sk not in arrays]
    if missing:
        raise KeyError(f"Configuration '{config}' is missing {missing}")

    particles = torch.from_numpy(np.asarray(arrays['particles'], dtype=np.float32))
    if particles.dim() != 4:
        raise ValueError(f"Expected particles of shape (N,P,T,D) for '{config}', got {tuple(particles.shape)}")

    goos = np.asarray(arrays['goos'], dtype=np.float32)
    # configurations without goos carry a placeholder array
    if goos.ndim < 3 or goos.shape[1] == 0:
        goos_t = None
    else:
        goos_t = torch.from_numpy(goos)
        if goos_t.size(0) != particles.size(0):
            raise ValueError(f"Goos of '{config}' have {goos_t.size(0)} examples, particles have {particles.size(0)}")

    mask = torch.from_numpy(np.asarray(arrays['mask'], dtype=np.float32)).reshape(-1)
    return ConfigRecord(particles=particles, goos=goos_t, mask=mask)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower()
    if ext in ('.h5', '.hdf5'):
        return 'hdf5'
    elif ext == '.npz':
        return 'npz'
    raise ValueError(f"Unsupported dataset format: {path}")


def _read_hdf5(path: Path) -> Dict[str, np.ndarray]:
    with h5py.File(path, 'r') as f:
        raw = {}
        for k in f.keys():
            if not isinstance(f[k], h5py.Dataset):
                raise ValueError(f"Entry '{k}' in {path} is not a dataset")
            raw[k] = np.array(f[k])
        return raw


def _read_npz(path: Path) -> Dict[str, np.ndarray]:
    with np.load(path, allow_pickle=False) as npz:
        return {k: npz[k] for k in npz.files}


def resolve_dataset_path(dataset_name: str, dataset_folder: str | Path) -> Path:
    """Find ``<folder>/<name>.h5`` (or ``.hdf5``/``.npz``)."""
    folder = Path(dataset_folder)
    if Path(dataset_name).suffix:
        return folder / dataset_name
    for ext in ('.h5', '.hdf5', '.npz'):
        candidate = folder / f"{dataset_name}{ext}"
        if candidate.exists():
            return candidate
    return folder / f"{dataset_name}.h5"


def load_data(dataset_name: str, dataset_folder: str | Path) -> Dict[str, ConfigRecord]:
    """Loads the dataset as a dict of configuration name -> ConfigRecord.

    Keys in the archive are not assumed to be in any order.
    """
    path = resolve_dataset_path(dataset_name, dataset_folder)
    if not path.exists():
        raise FileNotFoundError(f"Dataset file not found: {path}")

    fmt = _detect_format(path)
    raw = _read_hdf5(path) if fmt == 'hdf5' else _read_npz(path)

    grouped: Dict[str, Dict[str, np.ndarray]] = {}
    for key, value in raw.items():
        config, subkey = split_key(key)
        grouped.setdefault(config, {})[subkey] = value

    dataset = {config: to_record(config, arrays) for config, arrays in grouped.items()}
    logger.info(f"Loaded {len(dataset)} configurations from {path}")
    return dataset


def save_data(dataset: Dict[str, ConfigRecord], path: str | Path) -> Path:
    """Write records with the flat ``<config><subkey>`` layout."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    flat = {}
    for config, record in dataset.items():
        flat[f"{config}particles"] = record.particles.numpy()
        # zero goos are stored as a 1-d placeholder
        flat[f"{config}goos"] = record.goos.numpy() if record.goos is not None else np.zeros(1)
        flat[f"{config}mask"] = record.mask.numpy()

    if _detect_format(path) == 'hdf5':
        with h5py.File(path, 'w') as f:
            for key, value in flat.items():
                f.create_dataset(key, data=value)
    else:
        np.savez_compressed(path, **flat)
    logger.info(f"Saved {len(dataset)} configurations to {os.fspath(path)}")
    return path
