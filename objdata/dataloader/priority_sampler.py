"""Priority sampling over batch ids.

Batches are drawn with probability proportional to ``weight ** power``.
Weights are fed back by the training loop (typically the batch loss). The
epoch counter starts at 1 and advances after ``num_batches`` updates, so
``epoch_count > 1`` means every batch had a chance to report a weight.
"""
import torch


class PrioritySampler:

    def __init__(self, num_batches: int, init_weight: float = 1.0):
        if num_batches <= 0:
            raise ValueError(f"num_batches must be positive, got {num_batches}")
        self.num_batches = num_batches
        self.batch_weights = torch.full((num_batches,), float(init_weight), dtype=torch.float64)
        self.epoch_count = 1
        self.batch_count = 0

    @classmethod
    def create(cls, num_batches: int) -> 'PrioritySampler':
        return cls(num_batches)

    def update_batch_weight(self, batch_id: int, weight: float):
        if not 0 <= batch_id < self.num_batches:
            raise IndexError(f"batch id {batch_id} out of range [0, {self.num_batches})")
        self.batch_weights[batch_id] = float(weight)
        self.batch_count += 1
        if self.batch_count >= self.num_batches:
            self.epoch_count += 1
            self.batch_count = 0

    def sample(self, power: float = 1.0, generator: torch.Generator = None) -> int:
        probs = self.batch_weights.clamp(min=0).pow(power)
        if not torch.isfinite(probs).all() or probs.sum() <= 0:
            # degenerate weights: fall back to uniform
            probs = torch.ones_like(probs)
        return int(torch.multinomial(probs, 1, generator=generator))
