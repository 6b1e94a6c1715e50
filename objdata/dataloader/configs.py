"""Resolve a configuration specification into concrete configuration names.

A specification is a list whose entries are either exact configuration names
(``worldm1_np=2_ng=0``), world names (``worldm1``) or bracket abbreviations
such as ``[1:2-1:1-0:0]`` (worlds 1..2, one particle, no goos).
"""
import logging
import re
from typing import Iterable, List, Sequence, Tuple

from objdata.dataloader.errors import ConfigMismatchError

logger = logging.getLogger(__name__)

ALL_WORLDS = ['worldm1', 'worldm2', 'worldm3', 'worldm4']  # ALL_WORLDS[0] is worldm1
WORLD_RANGE = (1, 4)
PARTICLE_RANGE = (1, 6)
GOO_RANGE = (0, 5)  # there can be no goos

_WORLD_RE = re.compile(r'^worldm(\d+)$')
_CONFIG_RE = re.compile(r'^worldm(\d+)_np=(\d+)_ng=(\d+)$')
_ABBREV_RE = re.compile(r'^\[(\d*):(\d*)-(\d*):(\d*)-(\d*):(\d*)\]$')


def config_name(world: int, num_particles: int, num_goos: int) -> str:
    return f"{ALL_WORLDS[world - 1]}_np={num_particles}_ng={num_goos}"


def parse_config_name(name: str) -> Tuple[int, int, int]:
    """``'worldm2_np=3_ng=1'`` -> ``(2, 3, 1)``"""
    m = _CONFIG_RE.match(name)
    if m is None:
        raise ValueError(f"Not a configuration name: '{name}'")
    return tuple(int(g) for g in m.groups())


def is_world(entry: str) -> bool:
    return _WORLD_RE.match(entry) is not None


def is_abbreviation(entry: str) -> bool:
    return entry.startswith('[')


def merge_by_value(*groups: Iterable[str]) -> List[str]:
    """Concatenate while dropping repeats, keeping first-seen order."""
    merged = []
    seen = set()
    for group in groups:
        for item in group:
            if item not in seen:
                seen.add(item)
                merged.append(item)
    return merged


def _bound(value: str, default: int, lo: int, hi: int) -> int:
    if value == '':
        return default
    return min(max(int(value), lo), hi)


def convert2config(abbrev: str) -> List[str]:
    """Expand ``[w_lo:w_hi-p_lo:p_hi-g_lo:g_hi]`` into configuration names.

    Every bound can be left out, in which case it defaults to the end of the
    domain. Bounds are clamped to the domain.
    """
    m = _ABBREV_RE.match(abbrev)
    if m is None:
        raise ConfigMismatchError(f"Malformed configuration abbreviation: '{abbrev}'")
    wlow, whigh, nplow, nphigh, nglow, nghigh = m.groups()

    wlow = _bound(wlow, WORLD_RANGE[0], *WORLD_RANGE)
    whigh = _bound(whigh, WORLD_RANGE[1], *WORLD_RANGE)
    nplow = _bound(nplow, PARTICLE_RANGE[0], *PARTICLE_RANGE)
    nphigh = _bound(nphigh, PARTICLE_RANGE[1], *PARTICLE_RANGE)
    nglow = _bound(nglow, GOO_RANGE[0], *GOO_RANGE)
    nghigh = _bound(nghigh, GOO_RANGE[1], *GOO_RANGE)

    return [config_name(w, np_, ng)
            for w in range(wlow, whigh + 1)
            for np_ in range(nplow, nphigh + 1)
            for ng in range(nglow, nghigh + 1)]


def expand_abbreviations(abbrevs: str) -> List[str]:
    """``"[4:4-:-:],[1:2-3:3-0:1]"`` -> merged list of configuration names."""
    if ' ' in abbrevs:
        raise ConfigMismatchError(f"Abbreviation string must not contain spaces: '{abbrevs}'")
    return merge_by_value(*(convert2config(a) for a in abbrevs.split(',') if a))


def get_all_configs_for_worlds(worlds: Sequence[str], all_configs: Sequence[str]) -> List[str]:
    unknown = [w for w in worlds if w not in ALL_WORLDS]
    if unknown:
        raise ConfigMismatchError(f"Unknown worlds {unknown}; expected a subset of {ALL_WORLDS}")
    return [c for c in all_configs if any(w in c for w in worlds)]


def get_all_specified_configs(entries: Sequence[str], all_configs: Sequence[str]) -> List[str]:
    specified = []
    for entry in entries:
        if is_abbreviation(entry):
            specified = merge_by_value(specified, convert2config(entry))
        elif is_world(entry):
            specified = merge_by_value(specified, get_all_configs_for_worlds([entry], all_configs))
        else:
            # exact configuration name
            specified = merge_by_value(specified, [entry])
    return specified


def topo_order(configs: List[str]) -> List[str]:
    # Two orders are equally valid: all particle counts first then goos, or
    # diagonal. Plain lexicographic sorting gives the first one.
    return sorted(configs)


def resolve_configs(specified: Sequence[str], available: Iterable[str], shuffle: bool) -> List[str]:
    """Resolve ``specified`` against the configurations present in the dataset.

    Requested configurations missing from the dataset are dropped.
    """
    available = list(available)
    if not specified:
        requested = list(available)
    else:
        requested = get_all_specified_configs(list(specified), available)

    present = set(available)
    resolved = [c for c in merge_by_value(requested) if c in present]
    dropped = [c for c in requested if c not in present]
    if dropped:
        logger.debug(f"Dropping {len(dropped)} configurations absent from the dataset: {dropped}")

    if not resolved:
        raise ConfigMismatchError(f"None of the specified configurations {list(specified)} are in the dataset")

    if not shuffle:
        resolved = topo_order(resolved)
    return resolved
