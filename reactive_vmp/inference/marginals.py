"""
Marginal arena.

Marginals are stored in a list indexed by variable id. Structured groups
additionally keep their joint Gaussian marginal so that factors and the
free energy can read cross-covariances between group members.

Classes
-------
MarginalSet
    Indexed snapshot of all marginals.
"""

from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import torch

from ..distributions import DTYPE, Distribution, MvNormal


class MarginalSet:
    """
    Snapshot of the marginals of every variable.

    Parameters
    ----------
    marginals : sequence of Distribution
        One marginal per variable id.

    Notes
    -----
    Distributions are immutable, so ``copy`` is shallow. The scheduler
    works on a copy during a sweep and the session swaps it in only once
    the sweep has completed.
    """

    def __init__(self, marginals: Sequence[Distribution]):
        self._items: List[Distribution] = list(marginals)
        # group key -> (member ids, offsets, joint, joint covariance)
        self._joints: Dict[Tuple[int, ...], tuple] = {}
        self._joint_of: Dict[int, Tuple[int, ...]] = {}

    def __getitem__(self, variable_id: int) -> Distribution:
        return self._items[variable_id]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Distribution]:
        return iter(self._items)

    def copy(self) -> "MarginalSet":
        other = MarginalSet(self._items)
        other._joints = dict(self._joints)
        other._joint_of = dict(self._joint_of)
        return other

    def set(self, variable_id: int, marginal: Distribution) -> None:
        """Set an independent marginal, detaching it from any joint."""
        self._drop_joint(variable_id)
        self._items[variable_id] = marginal

    def set_joint(
        self,
        variable_ids: Sequence[int],
        joint: MvNormal,
        marginals: Sequence[Distribution]
    ) -> None:
        """
        Store a joint Gaussian over ``variable_ids`` and its marginals.

        The joint's coordinates are the stacked dimensions of the members,
        in the order of ``variable_ids``.
        """
        key = tuple(variable_ids)
        offsets = []
        start = 0
        for variable_id, marginal in zip(key, marginals):
            self._drop_joint(variable_id)
            self._items[variable_id] = marginal
            size = max(1, marginal.mean().numel())
            offsets.append((start, start + size))
            start += size
        self._joints[key] = (key, offsets, joint, joint.cov())
        for variable_id in key:
            self._joint_of[variable_id] = key

    def joint_of(self, variable_id: int) -> Optional[Tuple[Tuple[int, ...], MvNormal]]:
        """Members and joint marginal of the group containing the variable."""
        key = self._joint_of.get(variable_id)
        if key is None:
            return None
        members, _, joint, _ = self._joints[key]
        return members, joint

    def covariance(self, a: int, b: int) -> torch.Tensor:
        """
        Cov(a, b) under the current marginals.

        Zero for variables in different factorisation groups. Scalars give
        a 0-d tensor, vectors a (d_a, d_b) matrix.
        """
        qa, qb = self._items[a], self._items[b]
        scalar = qa.mean().ndim == 0 and qb.mean().ndim == 0
        if a == b:
            return qa.cov()

        key = self._joint_of.get(a)
        if key is not None and key == self._joint_of.get(b):
            members, offsets, _, cov = self._joints[key]
            sa = offsets[members.index(a)]
            sb = offsets[members.index(b)]
            block = cov[sa[0]:sa[1], sb[0]:sb[1]]
            return block[0, 0] if scalar else block

        if scalar:
            return torch.zeros((), dtype=DTYPE)
        return torch.zeros(
            max(1, qa.mean().numel()), max(1, qb.mean().numel()), dtype=DTYPE
        )

    def joints(self) -> List[Tuple[Tuple[int, ...], MvNormal]]:
        """All stored joint marginals."""
        return [(members, joint) for members, _, joint, _ in self._joints.values()]

    def _drop_joint(self, variable_id: int) -> None:
        key = self._joint_of.get(variable_id)
        if key is None:
            return
        for member in key:
            self._joint_of.pop(member, None)
        self._joints.pop(key, None)
