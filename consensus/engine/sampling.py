"""Sampling policies for minimal samples."""

from typing import Dict, Hashable, Mapping, Sequence

import numpy as np

from consensus.errors import ConfigurationError


class UniformSampler:
    """Draw k distinct indices uniformly from [0, n)."""

    def __init__(self, n: int, k: int):
        if k <= 0:
            raise ConfigurationError(f"minimal sample size must be positive, got {k}")
        self.n = int(n)
        self.k = int(k)

    def draw(self, rng: np.random.Generator) -> np.ndarray:
        return rng.choice(self.n, size=self.k, replace=False)


def validate_partition(partition: Mapping[Hashable, Sequence[int]],
                       n: int) -> Dict[Hashable, np.ndarray]:
    """
    Check that a group partition is a disjoint cover of [0, n).

    Args:
        partition: Group id -> correspondence indices
        n: Number of correspondences

    Returns:
        Group id -> sorted int index array, in the caller's group order
    """
    if not partition:
        raise ConfigurationError("group partition must contain at least one group")

    groups = {}
    seen = np.zeros(n, dtype=bool)
    for group_id, indices in partition.items():
        idx = np.asarray(indices, dtype=np.intp).reshape(-1)
        if idx.size and (idx.min() < 0 or idx.max() >= n):
            raise ConfigurationError(f"group {group_id!r} has indices outside [0, {n})")
        if len(np.unique(idx)) != idx.size or np.any(seen[idx]):
            raise ConfigurationError(f"group {group_id!r} overlaps another group")
        seen[idx] = True
        groups[group_id] = np.sort(idx)

    if not np.all(seen):
        missing = np.flatnonzero(~seen)
        raise ConfigurationError(
            f"group partition does not cover {len(missing)} correspondences (first: {int(missing[0])})"
        )
    return groups


def allocate_draws(sizes: Sequence[int], k: int, rng: np.random.Generator) -> np.ndarray:
    """
    Split k draws across groups as evenly as the group sizes allow.

    Groups that fill up hand their share to the others. Draws that cannot be
    split evenly go to randomly chosen groups with spare capacity.
    """
    sizes = np.asarray(sizes, dtype=np.intp)
    if k > int(sizes.sum()):
        raise ConfigurationError(f"cannot draw {k} indices from {int(sizes.sum())} correspondences")

    counts = np.zeros(len(sizes), dtype=np.intp)
    remaining = k
    while remaining > 0:
        open_groups = np.flatnonzero(counts < sizes)
        share = remaining // len(open_groups)
        if share == 0:
            chosen = rng.choice(open_groups, size=remaining, replace=False)
            counts[chosen] += 1
            break
        grant = np.minimum(share, sizes[open_groups] - counts[open_groups])
        counts[open_groups] += grant
        remaining -= int(grant.sum())
    return counts


class GroupedSampler:
    """
    Stratified sampler over a group partition.

    Falls back to flat uniform sampling when only one group is non-empty.
    """

    def __init__(self, partition: Mapping[Hashable, Sequence[int]], n: int, k: int):
        if k <= 0:
            raise ConfigurationError(f"minimal sample size must be positive, got {k}")
        self.groups = validate_partition(partition, n)
        self.k = int(k)
        self.n = int(n)
        self._members = [idx for idx in self.groups.values() if idx.size > 0]
        self._sizes = [idx.size for idx in self._members]
        self._flat = UniformSampler(n, k) if len(self._members) <= 1 else None

    @property
    def effective_groups(self) -> int:
        return len(self._members)

    def draw(self, rng: np.random.Generator) -> np.ndarray:
        if self._flat is not None:
            return self._flat.draw(rng)

        counts = allocate_draws(self._sizes, self.k, rng)
        parts = [
            rng.choice(members, size=int(count), replace=False)
            for members, count in zip(self._members, counts)
            if count > 0
        ]
        return np.concatenate(parts)
