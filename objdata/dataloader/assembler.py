"""Materialize the training tensors of one configuration.

Every example of a configuration is expanded into one example per particle:
that particle is the particle of interest ("this") and every other particle
plus every goo forms its context. The context always has
``MAX_OTHER_OBJECTS`` slots; slots beyond the real objects are zero padding.

Each batch is a ``Batch`` tuple:

    this_x:         (batch, num_past * OBJECT_DIM)
    context_x:      (batch, MAX_OTHER_OBJECTS, num_past * OBJECT_DIM)
    y:              (batch, num_future * OBJECT_DIM)
    mask:           (MAX_OTHER_OBJECTS,)
    config, start, end
    context_future: (batch, MAX_OTHER_OBJECTS, num_future * OBJECT_DIM)

where ``num_future = window_size - num_past``.
"""
import logging
from typing import NamedTuple, Optional, Tuple

import torch

from objdata.dataloader.errors import PaddingOverflowError, ShapeInvariantError
from objdata.dataloader.store import ConfigRecord
from objdata.utils import release_memory

logger = logging.getLogger(__name__)

OBJECT_DIM = 8
MAX_OTHER_OBJECTS = 10


class Batch(NamedTuple):
    this_x: torch.Tensor
    context_x: torch.Tensor
    y: torch.Tensor
    mask: torch.Tensor
    config: str
    start: int
    end: int
    context_future: torch.Tensor


def _check(cond: bool, msg: str):
    if not cond:
        raise ShapeInvariantError(msg)


def expand_for_each_particle(particles: torch.Tensor) -> Tuple[torch.Tensor, Optional[torch.Tensor]]:
    """Expand (N, P, T, D) examples into one example per particle.

    Returns ``this`` of shape (N*P, T, D) and ``others`` of shape
    (N*P, P-1, T, D), or None when there is a single particle. Samples are
    grouped by particle: all N examples of particle 0 first, then particle 1...
    """
    num_particles = particles.size(1)
    this_particles = [particles[:, i] for i in range(num_particles)]
    this = torch.cat(this_particles, dim=0)

    if num_particles == 1:
        return this, None

    # leave particle i out
    other_particles = [torch.cat([particles[:, :i], particles[:, i + 1:]], dim=1)
                       for i in range(num_particles)]
    others = torch.cat(other_particles, dim=0)
    _check(others.size(0) == this.size(0) and others.size(1) == num_particles - 1,
           f"others {tuple(others.shape)} do not line up with this {tuple(this.shape)}")
    return this, others


def broadcast_goos(goos: Optional[torch.Tensor], num_particles: int, windowsize: int) -> Optional[torch.Tensor]:
    """(N, G, D) -> (N*P, G, T, D): one copy per particle group and per timestep."""
    if goos is None:
        return None
    goos = goos.repeat(num_particles, 1, 1)
    return goos.unsqueeze(2).expand(-1, -1, windowsize, -1)


# (has_others, has_goos) -> real part of the context
_CONTEXT_CASES = {
    (True, True): lambda others, goos: torch.cat([others, goos], dim=1),
    (True, False): lambda others, goos: others,
    (False, True): lambda others, goos: goos,
    (False, False): lambda others, goos: None,
}


def assemble_context(others: Optional[torch.Tensor],
                     goos: Optional[torch.Tensor],
                     num_samples: int,
                     windowsize: int,
                     dtype=torch.float32) -> Tuple[torch.Tensor, int]:
    """Concatenate other particles and goos and zero-pad to MAX_OTHER_OBJECTS.

    Returns the (num_samples, MAX_OTHER_OBJECTS, T, D) context and the
    number of padded slots.
    """
    num_others = 0 if others is None else others.size(1)
    num_goos = 0 if goos is None else goos.size(1)
    num_to_pad = MAX_OTHER_OBJECTS - (num_others + num_goos)
    if num_to_pad < 0:
        raise PaddingOverflowError(
            f"{num_others} other particles and {num_goos} goos do not fit in {MAX_OTHER_OBJECTS} context slots"
        )

    real = _CONTEXT_CASES[(others is not None, goos is not None)](others, goos)
    pad = torch.zeros(num_samples, num_to_pad, windowsize, OBJECT_DIM, dtype=dtype)
    context = pad if real is None else torch.cat([real, pad], dim=1)

    _check(context.dim() == 4 and context.size(0) == num_samples
           and context.size(1) == MAX_OTHER_OBJECTS and context.size(2) == windowsize
           and context.size(3) == OBJECT_DIM,
           f"context has shape {tuple(context.shape)}")
    return context, num_to_pad


def mask_context_count(mask: torch.Tensor) -> Optional[int]:
    """Number of real context objects encoded in the mask, None if all zero."""
    _check(mask.numel() == MAX_OTHER_OBJECTS, f"mask has {mask.numel()} entries, expected {MAX_OTHER_OBJECTS}")
    ones = torch.nonzero(mask.reshape(-1) == 1).flatten()
    if ones.numel() == 0:
        return None
    _check(ones.numel() == 1, f"mask has {ones.numel()} ones, expected one")
    # the one sits at 1-based position num_real
    return int(ones[0]) + 1


def check_mask(mask: torch.Tensor, num_real: int):
    """An all-zero mask is only valid when no real context object was assembled."""
    count = mask_context_count(mask)
    if count is None:
        _check(num_real == 0, f"mask is all zero but {num_real} context objects were assembled")
    else:
        _check(count == num_real, f"mask marks {count} context objects but {num_real} were assembled")


class ExampleAssembler:
    """Builds ``Batch`` tuples from one configuration's raw tensors."""

    def __init__(self, num_past: int, window_size: int, relative: bool = True,
                 device: torch.device = torch.device('cpu')):
        self.num_past = num_past
        self.window_size = window_size
        self.num_future = window_size - num_past
        self.relative = relative
        self.device = device

    def next_config(self, record: ConfigRecord, config: str, start: int, end: int) -> Batch:
        """Assemble samples ``start..end`` (inclusive) of the expanded configuration.

        The whole configuration is expanded before slicing, so batches of the
        same configuration repeat that work.
        """
        particles = record.particles  # (num_examples x num_particles x windowsize x 8)
        num_particles = particles.size(1)
        _check(particles.size(3) == OBJECT_DIM, f"particles have {particles.size(3)} features")
        _check(particles.size(2) >= self.window_size,
               f"{config}: window of {particles.size(2)} is shorter than {self.window_size}")

        this_particles, other_particles = expand_for_each_particle(particles)
        num_samples, windowsize = this_particles.shape[:2]
        _check(num_samples == particles.size(0) * num_particles,
               f"{config}: {num_samples} samples from {particles.size(0)} examples x {num_particles} particles")

        goos = broadcast_goos(record.goos, num_particles, windowsize)
        context, num_to_pad = assemble_context(other_particles, goos, num_samples, windowsize,
                                               dtype=this_particles.dtype)
        check_mask(record.mask, MAX_OTHER_OBJECTS - num_to_pad)

        # split into past and future
        this_x = this_particles[:, :self.num_past]
        context_x = context[:, :, :self.num_past]
        y = this_particles[:, self.num_past:self.window_size]
        context_future = context[:, :, self.num_past:self.window_size]

        _check(this_x.size(0) == num_samples and context_x.size(0) == num_samples and y.size(0) == num_samples,
               "sample counts of this_x, context_x and y differ")
        _check(this_x.dim() == 3 and context_x.dim() == 4 and y.dim() == 3,
               f"unexpected axis counts {this_x.dim()}, {context_x.dim()}, {y.dim()}")
        _check(this_x.size(1) == self.num_past and context_x.size(2) == self.num_past
               and y.size(1) == self.num_future and context_future.size(2) == self.num_future,
               "past/future lengths do not match num_past/window_size")
        _check(context_x.size(1) == MAX_OTHER_OBJECTS, f"context width {context_x.size(1)}")
        _check(this_x.size(2) == OBJECT_DIM and context_x.size(3) == OBJECT_DIM and y.size(2) == OBJECT_DIM,
               "feature width differs from OBJECT_DIM")

        this_x = this_x.to(self.device)
        context_x = context_x.to(self.device)
        mask = record.mask.to(self.device)
        y = y.to(self.device)
        context_future = context_future.to(self.device)

        # relative to the last past frame of the same particle
        if self.relative:
            y = y - this_x[:, -1:]

        this_x = this_x.reshape(num_samples, self.num_past * OBJECT_DIM)
        context_x = context_x.reshape(num_samples, MAX_OTHER_OBJECTS, self.num_past * OBJECT_DIM)
        y = y.reshape(num_samples, self.num_future * OBJECT_DIM)
        context_future = context_future.reshape(num_samples, MAX_OTHER_OBJECTS, self.num_future * OBJECT_DIM)
        _check(this_x.dim() == 2 and context_x.dim() == 3 and y.dim() == 2, "flattening changed axis counts")

        _check(0 <= start <= end < num_samples,
               f"{config}: samples {start}..{end} are outside 0..{num_samples - 1}")

        # clone so the expanded tensors can be freed
        batch = Batch(this_x[start:end + 1].clone(),
                      context_x[start:end + 1].clone(),
                      y[start:end + 1].clone(),
                      mask,
                      config,
                      start,
                      end,
                      context_future[start:end + 1].clone())
        _check(batch.this_x.size(0) == end - start + 1,
               f"{config}: batch has {batch.this_x.size(0)} rows, expected {end - start + 1}")
        del this_particles, other_particles, goos, context
        release_memory(self.device)
        return batch
