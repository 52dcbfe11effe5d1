"""
Variational free energy.

F[q] = sum_a E_q[-log f_a] - sum_g H[q_g]

where the first sum runs over all factors and the second over the
factorisation groups of the latent variables (a singleton group
contributes the entropy of its marginal, a structured group the entropy of
its joint). Observed variables have point-mass marginals and contribute no
entropy. Every average energy includes its normalising constants, so F is
an upper bound on -log p(data) and equals it at the exact posterior.

Functions
---------
evaluate
    Free energy of a marginal snapshot.
free_energy_terms
    Per-factor and per-group breakdown of the free energy.
"""

import math
from typing import Dict, List, Tuple

from ..exceptions import FreeEnergyUndefined
from ..graph import FactorGraph
from .marginals import MarginalSet


def _finite(value, what: str) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise FreeEnergyUndefined(f"{what} is not finite ({value})")
    return value


def free_energy_terms(
    graph: FactorGraph,
    marginals: MarginalSet
) -> Dict[str, List[Tuple[object, float]]]:
    """
    Break the free energy down into its terms.

    Returns
    -------
    terms : dict
        ``"energies"``: list of (factor id, average energy);
        ``"entropies"``: list of (group member ids, entropy).

    Raises
    ------
    FreeEnergyUndefined
        If any term is NaN or infinite.
    """
    energies = []
    for factor in graph.factors:
        energy = _finite(
            factor.average_energy(marginals),
            f"Average energy of factor {factor.id} ('{factor.kind}')"
        )
        energies.append((factor.id, energy))

    entropies = []
    seen = set()
    for variable_id in graph.latent_ids():
        if variable_id in seen:
            continue
        joint = marginals.joint_of(variable_id)
        if joint is not None:
            members, distribution = joint
        else:
            members, distribution = (variable_id,), marginals[variable_id]
        seen.update(members)
        names = ", ".join(graph.name_of(v) for v in members)
        entropy = _finite(distribution.entropy(), f"Entropy of q({names})")
        entropies.append((tuple(members), entropy))

    return {"energies": energies, "entropies": entropies}


def evaluate(
    graph: FactorGraph,
    marginals: MarginalSet,
    offset: float = 0.0
) -> float:
    """
    Variational free energy of a marginal snapshot.

    Pure function of its arguments: it neither mutates the marginals nor
    depends on scheduler state, so it can be called after every sweep.

    Parameters
    ----------
    graph : FactorGraph
        The model.
    marginals : MarginalSet
        Marginals of all variables.
    offset : float, default=0.0
        Constant added to the result (free-energy convention).

    Returns
    -------
    free_energy : float

    Raises
    ------
    FreeEnergyUndefined
        If any term is NaN or infinite.
    """
    terms = free_energy_terms(graph, marginals)
    energy = sum(value for _, value in terms["energies"])
    entropy = sum(value for _, value in terms["entropies"])
    return _finite(energy - entropy + offset, "Free energy")
