"""
Factor kinds and their variational message rules.

Each factor connects an ordered tuple of variables and provides three
closed-form rules evaluated against the current marginals:

* ``message(position, marginals)``: the VMP message towards the variable
  at ``position``, computed from the marginals of the other arguments;
* ``average_energy(marginals)``: U = -E_q[log f], used by the free energy;
* ``gaussian_terms(positions, marginals)``: quadratic (precision, shift)
  contributions to a joint Gaussian over the arguments at ``positions``,
  used for structured groups. Only linear-Gaussian factors implement it.

Classes
-------
Factor
    Abstract base class.
PriorFactor
    Fixed distribution over one variable.
NormalFactor
    out ~ N(mean, precision^-1), univariate.
MvNormalFactor
    out ~ N(mean, Lambda^-1) with Wishart-distributed Lambda.
CategoricalFactor
    out ~ Cat(p) with Dirichlet-distributed p.
BernoulliFactor
    out ~ Ber(p) with Beta-distributed p.
NormalMixtureFactor
    out ~ sum_k switch_k N(m_k, w_k^-1).

Functions
---------
register_factor
    Add a custom factor kind to ``FACTOR_KINDS``.
"""

import math
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence, Tuple, Type

import torch

from ..distributions import (
    DTYPE,
    Bernoulli,
    Beta,
    Categorical,
    Dirichlet,
    Distribution,
    ExponentialFamily,
    Gamma,
    MvNormal,
    Normal,
    Wishart
)
from ..exceptions import IncompatibleFamily

LOG_2PI = math.log(2 * math.pi)

GaussianTerm = Tuple[Tuple[int, ...], torch.Tensor, torch.Tensor]


def _as_matrix(w: torch.Tensor) -> torch.Tensor:
    return w.reshape(1, 1) if w.ndim == 0 else w


def _as_vector(x: torch.Tensor) -> torch.Tensor:
    return x.reshape(1) if x.ndim == 0 else x


def _quadratic_pair(
    weight: torch.Tensor,
    a_in: bool,
    b_in: bool,
    mean_a: torch.Tensor,
    mean_b: torch.Tensor
) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Precision and shift of the energy (a - b)^T W (a - b) / 2.

    Arguments outside the joint (``a_in`` or ``b_in`` False) enter through
    their means.
    """
    W = _as_matrix(weight)
    if a_in and b_in:
        precision = torch.cat(
            [torch.cat([W, -W], dim=1), torch.cat([-W, W], dim=1)], dim=0
        )
        shift = torch.zeros(precision.shape[0], dtype=DTYPE)
    elif a_in:
        precision = W
        shift = W @ _as_vector(mean_b)
    else:
        precision = W
        shift = W @ _as_vector(mean_a)
    return precision, shift


def expected_square_difference(marginals, a: int, b: int) -> torch.Tensor:
    """
    E[(a - b)^2], or E[(a - b)(a - b)^T] for vector variables.

    Uses the cross-covariance of ``a`` and ``b`` when they share a
    structured joint marginal.
    """
    qa, qb = marginals[a], marginals[b]
    diff = qa.expectation("x") - qb.expectation("x")
    cross = marginals.covariance(a, b)
    if diff.ndim == 0:
        return diff ** 2 + qa.cov() + qb.cov() - 2.0 * cross
    return torch.outer(diff, diff) + qa.cov() + qb.cov() - cross - cross.T


class Factor(ABC):
    """
    Abstract factor node.

    Parameters
    ----------
    variables : sequence of int
        Ordered variable ids, one per argument in ``interface``.
    **static
        Static parameters of the factor kind.

    Attributes
    ----------
    id : int
        Factor id assigned by the graph.
    kind : str
        Registered factor kind.
    interface : tuple of str
        Argument names, in order.
    """

    kind = "factor"
    interface: Tuple[str, ...] = ()

    def __init__(self, variables: Sequence[int], **static):
        self.id = -1
        self.variables = tuple(variables)
        self.static = dict(static)

    @classmethod
    def arity(cls, **static) -> int:
        """Number of arguments required for the given static parameters."""
        return len(cls.interface)

    @abstractmethod
    def message(self, position: int, marginals) -> Distribution:
        """VMP message towards the argument at ``position``."""
        pass

    @abstractmethod
    def average_energy(self, marginals) -> torch.Tensor:
        """Expected negative log-factor under the current marginals."""
        pass

    def gaussian_terms(
        self,
        positions: Sequence[int],
        marginals
    ) -> List[GaussianTerm]:
        """
        Quadratic contributions to a joint Gaussian over ``positions``.

        Returns a list of ``(positions, precision, shift)`` triples where
        ``precision`` and ``shift`` act on the stacked dimensions of the
        listed arguments.
        """
        raise IncompatibleFamily(
            f"Factor '{self.kind}' cannot contribute to a joint Gaussian "
            f"marginal"
        )

    def _q(self, marginals, position: int) -> Distribution:
        return marginals[self.variables[position]]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id}, variables={self.variables})"


class PriorFactor(Factor):
    """
    Fixed prior distribution over a single variable.

    Static parameters
    -----------------
    distribution : ExponentialFamily
        The prior (Normal, MvNormal, Gamma, Wishart, Beta, Dirichlet, ...).
    """

    kind = "prior"
    interface = ("out",)

    def __init__(self, variables, distribution: ExponentialFamily = None):
        if not isinstance(distribution, ExponentialFamily):
            raise ValueError(
                "prior factor needs an exponential-family 'distribution'"
            )
        super().__init__(variables, distribution=distribution)
        self.distribution = distribution

    def message(self, position, marginals):
        return self.distribution

    def average_energy(self, marginals):
        return self.distribution.cross_entropy(self._q(marginals, 0))

    def gaussian_terms(self, positions, marginals):
        if not isinstance(self.distribution, (Normal, MvNormal)):
            return super().gaussian_terms(positions, marginals)
        eta1, eta2 = self.distribution.natural_parameters()
        return [((0,), _as_matrix(-2.0 * eta2), _as_vector(eta1))]


class NormalFactor(Factor):
    """
    Univariate Gaussian link: out ~ N(mean, 1 / precision).

    ``precision`` may be latent (Gamma) or observed.
    """

    kind = "normal"
    interface = ("out", "mean", "precision")

    def message(self, position, marginals):
        q_prec = self._q(marginals, 2)
        if position == 0:
            return Normal.from_mean_precision(
                self._q(marginals, 1).expectation("x"), q_prec.expectation("x")
            )
        if position == 1:
            return Normal.from_mean_precision(
                self._q(marginals, 0).expectation("x"), q_prec.expectation("x")
            )
        d2 = expected_square_difference(
            marginals, self.variables[0], self.variables[1]
        )
        return Gamma.from_natural(torch.tensor(0.5, dtype=DTYPE), -0.5 * d2)

    def average_energy(self, marginals):
        q_prec = self._q(marginals, 2)
        d2 = expected_square_difference(
            marginals, self.variables[0], self.variables[1]
        )
        return (
            0.5 * LOG_2PI
            - 0.5 * q_prec.expectation("log")
            + 0.5 * q_prec.expectation("x") * d2
        )

    def gaussian_terms(self, positions, marginals):
        if 2 in positions:
            return super().gaussian_terms(positions, marginals)
        tau = self._q(marginals, 2).expectation("x")
        a_in, b_in = 0 in positions, 1 in positions
        precision, shift = _quadratic_pair(
            tau, a_in, b_in,
            self._q(marginals, 0).expectation("x"),
            self._q(marginals, 1).expectation("x")
        )
        return [(tuple(p for p in (0, 1) if p in positions), precision, shift)]


class MvNormalFactor(Factor):
    """
    Multivariate Gaussian link: out ~ N(mean, Lambda^-1).

    The message towards ``precision`` is a Wishart with d + 2 degrees of
    freedom and inverse scale E[(out - mean)(out - mean)^T].
    """

    kind = "mv_normal"
    interface = ("out", "mean", "precision")

    def message(self, position, marginals):
        q_prec = self._q(marginals, 2)
        if position in (0, 1):
            other = self._q(marginals, 1 - position)
            return MvNormal.from_mean_precision(
                other.expectation("x"), q_prec.expectation("x")
            )
        S = expected_square_difference(
            marginals, self.variables[0], self.variables[1]
        )
        return Wishart.from_natural(-0.5 * S, torch.tensor(0.5, dtype=DTYPE))

    def average_energy(self, marginals):
        q_prec = self._q(marginals, 2)
        S = expected_square_difference(
            marginals, self.variables[0], self.variables[1]
        )
        d = S.shape[0]
        return (
            0.5 * d * LOG_2PI
            - 0.5 * q_prec.expectation("log")
            + 0.5 * (q_prec.expectation("x") * S).sum()
        )

    def gaussian_terms(self, positions, marginals):
        if 2 in positions:
            return super().gaussian_terms(positions, marginals)
        W = self._q(marginals, 2).expectation("x")
        a_in, b_in = 0 in positions, 1 in positions
        precision, shift = _quadratic_pair(
            W, a_in, b_in,
            self._q(marginals, 0).expectation("x"),
            self._q(marginals, 1).expectation("x")
        )
        return [(tuple(p for p in (0, 1) if p in positions), precision, shift)]


class CategoricalFactor(Factor):
    """Categorical draw: out ~ Cat(p), with p Dirichlet or observed."""

    kind = "categorical"
    interface = ("out", "p")

    def message(self, position, marginals):
        if position == 0:
            return Categorical.from_natural(self._q(marginals, 1).expectation("log"))
        return Dirichlet.from_natural(self._q(marginals, 0).expectation("x"))

    def average_energy(self, marginals):
        z = self._q(marginals, 0).expectation("x")
        log_p = self._q(marginals, 1).expectation("log")
        return -(z * log_p).sum()


class BernoulliFactor(Factor):
    """Bernoulli draw: out ~ Ber(p), with p Beta or observed."""

    kind = "bernoulli"
    interface = ("out", "p")

    def message(self, position, marginals):
        if position == 0:
            q_p = self._q(marginals, 1)
            return Bernoulli.from_natural(
                q_p.expectation("log") - q_p.expectation("log1m")
            )
        x = self._q(marginals, 0).expectation("x")
        return Beta.from_natural(x, 1.0 - x)

    def average_energy(self, marginals):
        x = self._q(marginals, 0).expectation("x")
        q_p = self._q(marginals, 1)
        return -(
            x * q_p.expectation("log") + (1.0 - x) * q_p.expectation("log1m")
        )


class NormalMixtureFactor(Factor):
    """
    Gaussian mixture selector.

    Arguments are ``(out, switch, m_1, ..., m_K, w_1, ..., w_K)`` where
    ``switch`` is Categorical over K components, or Bernoulli when K = 2
    (success selects the second component), ``m_k`` are component means
    and ``w_k`` component precisions.

    Static parameters
    -----------------
    n_components : int
        Number of components K (at least 2).
    """

    kind = "normal_mixture"

    def __init__(self, variables, n_components: int = 2):
        super().__init__(variables, n_components=n_components)
        self.n_components = int(n_components)

    @classmethod
    def arity(cls, n_components: int = 2, **static) -> int:
        if int(n_components) < 2:
            raise ValueError("normal_mixture needs at least two components")
        return 2 + 2 * int(n_components)

    @property
    def interface(self) -> Tuple[str, ...]:
        K = self.n_components
        return (
            ("out", "switch")
            + tuple(f"m{k + 1}" for k in range(K))
            + tuple(f"w{k + 1}" for k in range(K))
        )

    def _switch_probs(self, marginals) -> torch.Tensor:
        q = self._q(marginals, 1)
        x = q.expectation("x")
        if x.ndim == 0:
            if self.n_components != 2:
                raise IncompatibleFamily(
                    "A binary switch requires exactly two mixture components"
                )
            return torch.stack([1.0 - x, x])
        return x

    def _component_energies(self, marginals) -> torch.Tensor:
        K = self.n_components
        out = self.variables[0]
        energies = []
        for k in range(K):
            q_w = self._q(marginals, 2 + K + k)
            d2 = expected_square_difference(marginals, out, self.variables[2 + k])
            energies.append(
                0.5 * LOG_2PI
                - 0.5 * q_w.expectation("log")
                + 0.5 * q_w.expectation("x") * d2
            )
        return torch.stack(energies)

    def message(self, position, marginals):
        K = self.n_components
        if position == 1:
            logits = -self._component_energies(marginals)
            if isinstance(self._q(marginals, 1), Bernoulli):
                return Bernoulli.from_natural(logits[1] - logits[0])
            return Categorical.from_natural(logits)

        probs = self._switch_probs(marginals)
        if position == 0:
            eta1 = torch.zeros((), dtype=DTYPE)
            weight = torch.zeros((), dtype=DTYPE)
            for k in range(K):
                c = probs[k] * self._q(marginals, 2 + K + k).expectation("x")
                eta1 = eta1 + c * self._q(marginals, 2 + k).expectation("x")
                weight = weight + c
            return Normal.from_natural(eta1, -0.5 * weight)

        if position < 2 + K:
            k = position - 2
            c = probs[k] * self._q(marginals, 2 + K + k).expectation("x")
            y = self._q(marginals, 0).expectation("x")
            return Normal.from_natural(c * y, -0.5 * c)

        k = position - 2 - K
        d2 = expected_square_difference(
            marginals, self.variables[0], self.variables[2 + k]
        )
        return Gamma.from_natural(0.5 * probs[k], -0.5 * probs[k] * d2)

    def average_energy(self, marginals):
        return (self._switch_probs(marginals) * self._component_energies(marginals)).sum()

    def gaussian_terms(self, positions, marginals):
        K = self.n_components
        allowed = {0} | set(range(2, 2 + K))
        if any(p not in allowed for p in positions):
            return super().gaussian_terms(positions, marginals)
        probs = self._switch_probs(marginals)
        y = self._q(marginals, 0).expectation("x")
        terms = []
        for k in range(K):
            a_in, b_in = 0 in positions, (2 + k) in positions
            if not (a_in or b_in):
                continue
            c = probs[k] * self._q(marginals, 2 + K + k).expectation("x")
            precision, shift = _quadratic_pair(
                c, a_in, b_in, y, self._q(marginals, 2 + k).expectation("x")
            )
            terms.append(
                (tuple(p for p in (0, 2 + k) if p in positions), precision, shift)
            )
        return terms


FACTOR_KINDS: Dict[str, Type[Factor]] = {
    cls.kind: cls
    for cls in (
        PriorFactor,
        NormalFactor,
        MvNormalFactor,
        CategoricalFactor,
        BernoulliFactor,
        NormalMixtureFactor
    )
}


def register_factor(cls: Type[Factor]) -> Type[Factor]:
    """
    Register a custom factor kind under ``cls.kind``.

    Can be used as a class decorator.
    """
    if not (isinstance(cls, type) and issubclass(cls, Factor)):
        raise TypeError("register_factor expects a Factor subclass")
    FACTOR_KINDS[cls.kind] = cls
    return cls
