"""Base class for batch loaders.

- BaseBatchLoader: torch Dataset whose items are whole, pre-planned batches
"""
from typing import Any, Dict, List

from torch.utils.data import Dataset


class BaseBatchLoader(Dataset):
    """Minimal base exposing load / index hooks.

    Subclasses should override `load()` to populate `self.raw`,
    `build_index()` to fill `self.index` with one entry per batch and
    `sample_batch_id()` to materialize a batch. Indexing the loader with a
    batch id returns that batch, so it can be wrapped by a
    ``torch.utils.data.DataLoader(loader, batch_size=None)``.
    """

    def __init__(self):
        self.raw: Dict[str, Any] = {}
        self.index: List[Any] = []

    def load(self, *args, **kwargs):
        raise NotImplementedError()

    def build_index(self):
        raise NotImplementedError()

    def sample_batch_id(self, batch_id: int):
        raise NotImplementedError()

    def __len__(self) -> int:
        return len(self.index)

    def __getitem__(self, idx):
        if isinstance(idx, slice):
            raise NotImplementedError('Slicing not implemented')
        if not -len(self) <= idx < len(self):
            raise IndexError(f"batch id {idx} out of range for {len(self)} batches")
        return self.sample_batch_id(idx % len(self))
