"""Small data utilities for loader experiments.

Includes a toy dataset generator useful for smoke tests and development.
"""
from typing import Dict, Iterable, Optional

import torch

from objdata.dataloader.assembler import MAX_OTHER_OBJECTS
from objdata.dataloader.configs import parse_config_name
from objdata.dataloader.errors import PaddingOverflowError
from objdata.dataloader.store import ConfigRecord

NUM_CLASSES = 4  # one-hot mass / goo strength


def make_mask(num_particles: int, num_goos: int) -> torch.Tensor:
	"""Mask with a one at 1-based position (num_particles - 1) + num_goos."""
	mask = torch.zeros(MAX_OTHER_OBJECTS)
	num_real = (num_particles - 1) + num_goos
	if num_real > MAX_OTHER_OBJECTS:
		raise PaddingOverflowError(f"{num_real} context objects do not fit in a mask of {MAX_OTHER_OBJECTS}")
	if num_real > 0:
		mask[num_real - 1] = 1
	return mask


def _one_hot(shape, generator) -> torch.Tensor:
	idx = torch.randint(NUM_CLASSES, shape, generator=generator)
	return torch.nn.functional.one_hot(idx, NUM_CLASSES).float()


def make_toy_record(num_examples: int,
					num_particles: int,
					num_goos: int,
					windowsize: int = 4,
					generator: Optional[torch.Generator] = None) -> ConfigRecord:
	"""Random trajectories of shape (num_examples, num_particles, windowsize, 8).

	Mass is constant along a trajectory, goos are axis-aligned boxes.
	"""
	state = torch.randn(num_examples, num_particles, windowsize, 4, generator=generator)
	mass = _one_hot((num_examples, num_particles), generator)
	mass = mass.unsqueeze(2).expand(-1, -1, windowsize, -1)
	particles = torch.cat([state, mass], dim=-1).contiguous()

	goos = None
	if num_goos > 0:
		corner = torch.rand(num_examples, num_goos, 2, generator=generator)
		extent = torch.rand(num_examples, num_goos, 2, generator=generator)
		strength = _one_hot((num_examples, num_goos), generator)
		goos = torch.cat([corner, corner + extent, strength], dim=-1)

	return ConfigRecord(particles=particles, goos=goos, mask=make_mask(num_particles, num_goos))


def make_toy_dataset(configs: Iterable[str],
					 num_examples: int = 4,
					 windowsize: int = 4,
					 seed: Optional[int] = None) -> Dict[str, ConfigRecord]:
	"""Create a random dataset holding `num_examples` examples per configuration.

	Args:
		configs: configuration names such as 'worldm1_np=2_ng=0'
		num_examples: examples per configuration
		windowsize: time-steps per example
		seed: optional RNG seed for reproducibility

	Returns:
		dict of configuration name -> ConfigRecord
	"""
	generator = None
	if seed is not None:
		generator = torch.Generator().manual_seed(seed)

	dataset = {}
	for config in configs:
		_, num_particles, num_goos = parse_config_name(config)
		dataset[config] = make_toy_record(num_examples, num_particles, num_goos, windowsize, generator)
	return dataset
