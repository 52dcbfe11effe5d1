"""
Message scheduler and update engine.

One sweep visits every constraint group once, in the order produced by the
partition. For each group all factor-to-variable messages are computed
before any of the group's marginals is committed. The updated marginals are
written to a sweep-local working copy; the caller replaces its committed
state with that copy only when the whole sweep succeeded, so an error
mid-sweep leaves the previous iteration intact.

Classes
-------
MessageScheduler
    Runs sweeps over a factor graph for a given partition.
"""

from typing import Dict, List, Sequence, Tuple

import torch

from ..distributions import DTYPE, Distribution, MvNormal, Normal, prod_all
from ..exceptions import IncompatibleFamily
from ..graph import FACTOR_TO_VARIABLE, VARIABLE_TO_FACTOR, FactorGraph
from .marginals import MarginalSet

SEQUENTIAL = "sequential"
SYNCHRONOUS = "synchronous"
SCHEDULES = (SEQUENTIAL, SYNCHRONOUS)

Edge = Tuple[int, int, str]


class MessageScheduler:
    """
    Variational message-passing sweeps.

    Parameters
    ----------
    graph : FactorGraph
        The model.
    groups : sequence of tuple of int
        Ordered partition of the latent variables.
    schedule : {"sequential", "synchronous"}, default="sequential"
        ``"sequential"``: each group reads the marginals committed by the
        groups before it in the same sweep. ``"synchronous"``: every group
        reads the previous sweep's marginals.

    Notes
    -----
    Singleton groups use the mean-field update: the product of all
    incoming VMP messages. Larger groups must consist of Normal/MvNormal
    variables and get a joint Gaussian marginal assembled from the
    ``gaussian_terms`` of every incident factor.

    A VMP message depends only on the current marginals of the factor's
    other arguments, never on the previous message along the same edge,
    so every sweep recomputes its messages from the marginals it reads.
    The returned message map records them for inspection; it is not an
    input of the next sweep.

    The sequential schedule is the default because each group then reads
    marginals that are consistent with the groups already updated, which
    makes the mean-field free energy non-increasing. Under the synchronous
    schedule coupled groups (such as mixture assignments and component
    parameters) are updated from stale values and can oscillate.
    """

    def __init__(
        self,
        graph: FactorGraph,
        groups: Sequence[Tuple[int, ...]],
        schedule: str = SEQUENTIAL
    ):
        if schedule not in SCHEDULES:
            raise ValueError(
                f"Unknown schedule '{schedule}', expected one of {SCHEDULES}"
            )
        self.graph = graph
        self.groups = [tuple(g) for g in groups]
        self.schedule = schedule

    def sweep(
        self,
        marginals: MarginalSet
    ) -> Tuple[MarginalSet, Dict[Edge, Distribution]]:
        """
        Run one sweep.

        Parameters
        ----------
        marginals : MarginalSet
            Committed marginals of the previous iteration. Not modified.

        Returns
        -------
        working : MarginalSet
            Marginals after the sweep.
        messages : dict
            Most recent message per (factor id, variable id, direction)
            produced during the sweep.

        Raises
        ------
        ImproperDistribution
            If a marginal update is not normalisable.
        IncompatibleFamily
            If messages of different families meet at a variable.
        """
        working = marginals.copy()
        messages: Dict[Edge, Distribution] = {}

        for group in self.groups:
            source = working if self.schedule == SEQUENTIAL else marginals
            if len(group) == 1:
                updated = self._update_single(group[0], source, messages)
                if updated is not None:
                    working.set(group[0], updated)
            else:
                self._update_joint(group, source, working)

        for factor_id, variable_id, direction in self.graph.edges:
            if direction == VARIABLE_TO_FACTOR and self.graph.variables[variable_id].is_latent:
                messages[(factor_id, variable_id, direction)] = working[variable_id]
        return working, messages

    def _update_single(
        self,
        variable_id: int,
        source: MarginalSet,
        messages: Dict[Edge, Distribution]
    ):
        """Mean-field update of one variable; None if it has no factors."""
        factor_ids = self.graph.neighbors(variable_id)
        if not factor_ids:
            return None

        incoming = []
        for factor_id in factor_ids:
            factor = self.graph.factors[factor_id]
            position = factor.variables.index(variable_id)
            message = factor.message(position, source)
            messages[(factor_id, variable_id, FACTOR_TO_VARIABLE)] = message
            incoming.append(message)

        marginal = prod_all(incoming)
        family = self.graph.variables[variable_id].family
        if family is not None and not isinstance(marginal, family):
            raise IncompatibleFamily(
                f"Update of '{self.graph.name_of(variable_id)}' produced "
                f"{type(marginal).__name__}, expected {family.__name__}"
            )
        return marginal

    def _update_joint(
        self,
        group: Tuple[int, ...],
        source: MarginalSet,
        working: MarginalSet
    ) -> None:
        """Joint Gaussian update of a structured group."""
        members = [v for v in group if self.graph.neighbors(v)]
        if not members:
            return

        offsets = {}
        start = 0
        for variable_id in members:
            q = source[variable_id]
            if isinstance(q, Normal):
                size = 1
            elif isinstance(q, MvNormal):
                size = q.dim
            else:
                raise IncompatibleFamily(
                    f"Structured group member '{self.graph.name_of(variable_id)}' "
                    f"is {type(q).__name__}; joint updates need Gaussian marginals"
                )
            offsets[variable_id] = (start, start + size)
            start += size

        precision = torch.zeros(start, start, dtype=DTYPE)
        shift = torch.zeros(start, dtype=DTYPE)

        for factor_id in self._incident_factors(members):
            factor = self.graph.factors[factor_id]
            positions = [
                p for p, v in enumerate(factor.variables) if v in offsets
            ]
            for term_positions, term_precision, term_shift in factor.gaussian_terms(
                positions, source
            ):
                index = torch.cat([
                    torch.arange(*offsets[factor.variables[p]])
                    for p in term_positions
                ])
                precision[index.unsqueeze(1), index] += term_precision
                shift[index] += term_shift

        joint = MvNormal.from_natural(shift, -0.5 * precision).ensure_proper()
        mean = joint.mean()
        cov = joint.cov()

        marginals = []
        for variable_id in members:
            lo, hi = offsets[variable_id]
            if isinstance(source[variable_id], Normal):
                marginals.append(Normal(mean[lo], cov[lo, lo]))
            else:
                marginals.append(MvNormal(mean[lo:hi], cov[lo:hi, lo:hi]))
        working.set_joint(members, joint, marginals)

    def _incident_factors(self, members: List[int]) -> List[int]:
        factor_ids = []
        for variable_id in members:
            for factor_id in self.graph.neighbors(variable_id):
                if factor_id not in factor_ids:
                    factor_ids.append(factor_id)
        return factor_ids
