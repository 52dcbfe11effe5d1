"""
Base classes for the distribution/message algebra.

Every distribution (and therefore every message) is stored in its natural
parameterisation. The product of two messages of the same family is the
sum of their natural parameters, and every closed-form quantity the engine
needs (entropy, cross-entropy, KL divergence) follows from the
log-normaliser and the expected sufficient statistics.

Classes
-------
Distribution
    Interface shared by exponential families and point masses.
ExponentialFamily
    Natural-parameter representation with generic entropy and products.

Functions
---------
prod_all
    Normalised product of a sequence of messages.
kl_divergence
    KL(q || p) for two distributions of the same family.
"""

import math
from abc import ABC, abstractmethod
from typing import Sequence, Tuple

import torch

from ..exceptions import ImproperDistribution, IncompatibleFamily

DTYPE = torch.float64

LOG_2PI = math.log(2 * math.pi)


def as_tensor(value) -> torch.Tensor:
    """Convert a number, array or tensor to a float64 tensor."""
    return torch.as_tensor(value, dtype=DTYPE)


def _dot(a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    """Sum of the elementwise product (trace inner product for matrices)."""
    return (a * b).sum()


class Distribution(ABC):
    """
    Interface of every marginal and message.

    The scheduler and the free-energy evaluator depend only on this
    capability set, never on the concrete family.
    """

    family: str = "distribution"

    @abstractmethod
    def mean(self) -> torch.Tensor:
        """Mean of the distribution."""
        pass

    @abstractmethod
    def cov(self) -> torch.Tensor:
        """Variance (scalar families) or covariance matrix."""
        pass

    @abstractmethod
    def entropy(self) -> torch.Tensor:
        """Differential (or discrete) entropy."""
        pass

    @abstractmethod
    def is_proper(self) -> bool:
        """Whether the distribution is a normalisable probability law."""
        pass

    @abstractmethod
    def prod(self, other: "Distribution") -> "Distribution":
        """Normalised product with another message."""
        pass

    def expectation(self, statistic: str) -> torch.Tensor:
        """
        Expectation of a named sufficient statistic.

        Parameters
        ----------
        statistic : str
            One of ``"x"``, ``"xx"``, ``"log"``, ``"log1m"``. ``"xx"`` is
            E[x^2] for scalars and E[x x^T] for vectors; ``"log"`` is
            E[log x], elementwise for vectors and E[log|X|] for matrices.

        Raises
        ------
        IncompatibleFamily
            If the family has no such statistic.
        """
        getter = getattr(self, f"_expect_{statistic}", None)
        if getter is None:
            raise IncompatibleFamily(
                f"{type(self).__name__} does not provide E[{statistic}]"
            )
        return getter()

    def ensure_proper(self) -> "Distribution":
        """Return ``self`` or raise ``ImproperDistribution``."""
        if not self.is_proper():
            raise ImproperDistribution(f"Improper distribution: {self!r}")
        return self


class ExponentialFamily(Distribution):
    """
    Exponential-family distribution in natural parameters.

    Subclasses set ``statistics`` (names of the sufficient statistics, in
    the order of the natural parameters) and implement ``from_natural``,
    ``log_normalizer`` and ``is_proper`` plus one ``_expect_<name>`` method
    per statistic. All families implemented here have a constant base
    measure, given by ``log_base_measure``.
    """

    statistics: Tuple[str, ...] = ()

    _eta: Tuple[torch.Tensor, ...]

    @classmethod
    def from_natural(cls, *eta) -> "ExponentialFamily":
        """Build an instance directly from natural parameters."""
        obj = cls.__new__(cls)
        obj._eta = tuple(as_tensor(e) for e in eta)
        return obj

    def natural_parameters(self) -> Tuple[torch.Tensor, ...]:
        """Natural parameters, in the order of ``statistics``."""
        return self._eta

    @abstractmethod
    def log_normalizer(self) -> torch.Tensor:
        """Log-partition function A(eta)."""
        pass

    def log_base_measure(self) -> float:
        """Constant log h(x) of the family."""
        return 0.0

    def expected_statistics(self) -> Tuple[torch.Tensor, ...]:
        """Expected sufficient statistics under this distribution."""
        return tuple(self.expectation(name) for name in self.statistics)

    def entropy(self) -> torch.Tensor:
        """H[q] = A(eta) - <eta, E[T]> - log h."""
        expected = self.expected_statistics()
        inner = sum(_dot(e, t) for e, t in zip(self._eta, expected))
        return self.log_normalizer() - inner - self.log_base_measure()

    def cross_entropy(self, q: Distribution) -> torch.Tensor:
        """
        Cross-entropy -E_q[log p] with ``self`` as p.

        ``q`` may belong to any family that provides this family's
        sufficient statistics (including a point mass).
        """
        inner = sum(
            _dot(e, q.expectation(name))
            for e, name in zip(self._eta, self.statistics)
        )
        return self.log_normalizer() - inner - self.log_base_measure()

    def _check_compatible(self, other: "ExponentialFamily") -> None:
        if type(other) is not type(self):
            raise IncompatibleFamily(
                f"Cannot combine {type(self).__name__} with "
                f"{type(other).__name__}"
            )
        for a, b in zip(self._eta, other._eta):
            if a.shape != b.shape:
                raise IncompatibleFamily(
                    f"Shape mismatch in {type(self).__name__} product: "
                    f"{tuple(a.shape)} vs {tuple(b.shape)}"
                )

    def prod(self, other: Distribution) -> Distribution:
        return prod_all([self, other])

    def __repr__(self) -> str:
        params = ", ".join(
            f"{name}={value}" for name, value in self._describe().items()
        )
        return f"{type(self).__name__}({params})"

    def _describe(self) -> dict:
        return {"eta": self._eta}


def prod_all(messages: Sequence[Distribution]) -> Distribution:
    """
    Normalised product of messages.

    Natural parameters of all messages are summed first and properness is
    checked once on the result, so individually improper messages (such
    as flat likelihood terms) can be combined.

    Parameters
    ----------
    messages : sequence of Distribution
        At least one message. A point mass absorbs every other message.

    Returns
    -------
    Distribution
        The proper, normalised product.

    Raises
    ------
    IncompatibleFamily
        If the messages belong to different families or shapes.
    ImproperDistribution
        If the summed natural parameters are not normalisable.
    """
    if len(messages) == 0:
        raise ValueError("prod_all needs at least one message")

    point_masses = [m for m in messages if not isinstance(m, ExponentialFamily)]
    if point_masses:
        first = point_masses[0]
        for other in point_masses[1:]:
            if not torch.equal(first.mean(), other.mean()):
                raise IncompatibleFamily(
                    "Cannot combine point masses at different locations"
                )
        return first

    head = messages[0]
    for other in messages[1:]:
        head._check_compatible(other)

    eta = [e.clone() for e in head.natural_parameters()]
    for other in messages[1:]:
        for k, e in enumerate(other.natural_parameters()):
            eta[k] = eta[k] + e

    return type(head).from_natural(*eta).ensure_proper()


def kl_divergence(q: ExponentialFamily, p: ExponentialFamily) -> torch.Tensor:
    """
    KL divergence KL(q || p) between two members of the same family.

    Raises
    ------
    IncompatibleFamily
        If ``q`` and ``p`` belong to different families.
    """
    if type(q) is not type(p):
        raise IncompatibleFamily(
            f"KL divergence between {type(q).__name__} and "
            f"{type(p).__name__} is not defined"
        )
    return p.cross_entropy(q) - q.entropy()
