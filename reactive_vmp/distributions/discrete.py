"""
Discrete families and their conjugate priors.

Classes
-------
Bernoulli
    Binary variable, natural parameter logit(p).
Categorical
    One-hot variable over K classes, natural parameters log p.
Beta
    Prior over a Bernoulli probability.
Dirichlet
    Prior over a Categorical probability vector.
"""

import torch
import torch.nn.functional as F

from .base import ExponentialFamily, as_tensor


class Bernoulli(ExponentialFamily):
    """Bernoulli distribution with success probability ``p``."""

    family = "bernoulli"
    statistics = ("x",)

    def __init__(self, p=0.5):
        p = as_tensor(p)
        self._eta = (torch.log(p) - torch.log1p(-p),)

    @property
    def p(self) -> torch.Tensor:
        return torch.sigmoid(self._eta[0])

    def mean(self) -> torch.Tensor:
        return self.p

    def cov(self) -> torch.Tensor:
        return self.p * (1.0 - self.p)

    def probs(self) -> torch.Tensor:
        """Probabilities of the outcomes (0, 1)."""
        return torch.stack([1.0 - self.p, self.p])

    def is_proper(self) -> bool:
        return bool(torch.isfinite(self._eta[0]))

    def log_normalizer(self) -> torch.Tensor:
        return F.softplus(self._eta[0])

    def entropy(self) -> torch.Tensor:
        probs = self.probs()
        return -torch.special.xlogy(probs, probs).sum()

    def _expect_x(self) -> torch.Tensor:
        return self.p

    def _describe(self) -> dict:
        return {"p": float(self.p)}


class Categorical(ExponentialFamily):
    """
    Categorical distribution over one-hot vectors.

    Parameters
    ----------
    probs : array-like
        Class probabilities, shape (K,). Normalised on construction.
    """

    family = "categorical"
    statistics = ("x",)

    def __init__(self, probs):
        probs = as_tensor(probs)
        self._eta = (torch.log(probs / probs.sum()),)

    @classmethod
    def from_natural(cls, eta) -> "Categorical":
        # log-probabilities are kept normalised
        eta = as_tensor(eta)
        return super().from_natural(eta - torch.logsumexp(eta, dim=-1))

    @property
    def n_classes(self) -> int:
        return self._eta[0].shape[0]

    def probs(self) -> torch.Tensor:
        return torch.exp(self._eta[0])

    def mean(self) -> torch.Tensor:
        return self.probs()

    def cov(self) -> torch.Tensor:
        p = self.probs()
        return torch.diag(p) - torch.outer(p, p)

    def is_proper(self) -> bool:
        eta = self._eta[0]
        if torch.isnan(eta).any() or (eta == float("inf")).any():
            return False
        return bool(torch.isfinite(torch.logsumexp(eta, dim=-1)))

    def log_normalizer(self) -> torch.Tensor:
        return torch.logsumexp(self._eta[0], dim=-1)

    def entropy(self) -> torch.Tensor:
        p = self.probs()
        return -torch.special.xlogy(p, p).sum()

    def _expect_x(self) -> torch.Tensor:
        return self.probs()

    def _describe(self) -> dict:
        return {"probs": [round(float(v), 4) for v in self.probs()]}


class Beta(ExponentialFamily):
    """Beta distribution with shape parameters ``a`` and ``b``."""

    family = "beta"
    statistics = ("log", "log1m")

    def __init__(self, a=1.0, b=1.0):
        a = as_tensor(a)
        b = as_tensor(b)
        self._eta = (a - 1.0, b - 1.0)

    @property
    def a(self) -> torch.Tensor:
        return self._eta[0] + 1.0

    @property
    def b(self) -> torch.Tensor:
        return self._eta[1] + 1.0

    def mean(self) -> torch.Tensor:
        return self.a / (self.a + self.b)

    def cov(self) -> torch.Tensor:
        a, b = self.a, self.b
        return a * b / ((a + b) ** 2 * (a + b + 1.0))

    def is_proper(self) -> bool:
        a, b = self.a, self.b
        return bool(torch.isfinite(a) and torch.isfinite(b) and a > 0 and b > 0)

    def log_normalizer(self) -> torch.Tensor:
        a, b = self.a, self.b
        return torch.lgamma(a) + torch.lgamma(b) - torch.lgamma(a + b)

    def _expect_x(self) -> torch.Tensor:
        return self.mean()

    def _expect_log(self) -> torch.Tensor:
        return torch.digamma(self.a) - torch.digamma(self.a + self.b)

    def _expect_log1m(self) -> torch.Tensor:
        return torch.digamma(self.b) - torch.digamma(self.a + self.b)

    def _describe(self) -> dict:
        return {"a": float(self.a), "b": float(self.b)}


class Dirichlet(ExponentialFamily):
    """
    Dirichlet distribution with concentration vector ``alpha``.

    Natural parameters are alpha - 1 for the sufficient statistic log p.
    """

    family = "dirichlet"
    statistics = ("log",)

    def __init__(self, alpha):
        self._eta = (as_tensor(alpha) - 1.0,)

    @property
    def alpha(self) -> torch.Tensor:
        return self._eta[0] + 1.0

    def mean(self) -> torch.Tensor:
        return self.alpha / self.alpha.sum()

    def cov(self) -> torch.Tensor:
        alpha = self.alpha
        a0 = alpha.sum()
        p = alpha / a0
        return (torch.diag(p) - torch.outer(p, p)) / (a0 + 1.0)

    def is_proper(self) -> bool:
        alpha = self.alpha
        return bool(torch.isfinite(alpha).all() and (alpha > 0).all())

    def log_normalizer(self) -> torch.Tensor:
        alpha = self.alpha
        return torch.lgamma(alpha).sum() - torch.lgamma(alpha.sum())

    def _expect_x(self) -> torch.Tensor:
        return self.mean()

    def _expect_log(self) -> torch.Tensor:
        alpha = self.alpha
        return torch.digamma(alpha) - torch.digamma(alpha.sum())

    def _describe(self) -> dict:
        return {"alpha": [round(float(v), 4) for v in self.alpha]}
