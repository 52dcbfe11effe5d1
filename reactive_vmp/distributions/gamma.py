"""
Precision families: Gamma (scalar) and Wishart (matrix).

Classes
-------
Gamma
    Shape/rate Gamma distribution.
Wishart
    Wishart distribution over positive-definite matrices.
"""

import math

import torch

from .base import ExponentialFamily, as_tensor


class Gamma(ExponentialFamily):
    """
    Gamma distribution with shape ``alpha`` and rate ``beta``.

    Natural parameters are (alpha - 1, -beta) for the sufficient
    statistics (log x, x).
    """

    family = "gamma"
    statistics = ("log", "x")

    def __init__(self, shape=1.0, rate=1.0):
        shape = as_tensor(shape)
        rate = as_tensor(rate)
        self._eta = (shape - 1.0, -rate)

    @property
    def shape(self) -> torch.Tensor:
        return self._eta[0] + 1.0

    @property
    def rate(self) -> torch.Tensor:
        return -self._eta[1]

    def mean(self) -> torch.Tensor:
        return self.shape / self.rate

    def var(self) -> torch.Tensor:
        return self.shape / self.rate ** 2

    def cov(self) -> torch.Tensor:
        return self.var()

    def is_proper(self) -> bool:
        shape, rate = self.shape, self.rate
        return bool(
            torch.isfinite(shape) and torch.isfinite(rate)
            and shape > 0 and rate > 0
        )

    def log_normalizer(self) -> torch.Tensor:
        return torch.lgamma(self.shape) - self.shape * torch.log(self.rate)

    def _expect_x(self) -> torch.Tensor:
        return self.mean()

    def _expect_log(self) -> torch.Tensor:
        return torch.digamma(self.shape) - torch.log(self.rate)

    def _describe(self) -> dict:
        return {"shape": float(self.shape), "rate": float(self.rate)}


class Wishart(ExponentialFamily):
    """
    Wishart distribution with ``df`` degrees of freedom and scale ``V``.

    Parameters
    ----------
    df : float
        Degrees of freedom, must exceed ``d - 1``.
    scale : array-like
        Positive-definite scale matrix, shape (d, d).

    Notes
    -----
    Natural parameters are (-V^{-1} / 2, (df - d - 1) / 2) for the
    sufficient statistics (X, log|X|). E[X] = df * V.
    """

    family = "wishart"
    statistics = ("x", "log")

    def __init__(self, df, scale):
        df = as_tensor(df)
        scale = as_tensor(scale)
        d = scale.shape[0]
        inv_scale = torch.linalg.inv(scale)
        inv_scale = 0.5 * (inv_scale + inv_scale.T)
        self._eta = (-0.5 * inv_scale, 0.5 * (df - d - 1.0))

    @classmethod
    def from_natural(cls, eta1, eta2) -> "Wishart":
        eta1 = as_tensor(eta1)
        return super().from_natural(0.5 * (eta1 + eta1.T), eta2)

    @property
    def dim(self) -> int:
        return self._eta[0].shape[0]

    @property
    def df(self) -> torch.Tensor:
        return 2.0 * self._eta[1] + self.dim + 1.0

    def inv_scale(self) -> torch.Tensor:
        return -2.0 * self._eta[0]

    def scale(self) -> torch.Tensor:
        return torch.cholesky_inverse(torch.linalg.cholesky(self.inv_scale()))

    def _logdet_scale(self) -> torch.Tensor:
        L = torch.linalg.cholesky(self.inv_scale())
        return -2.0 * torch.log(torch.diagonal(L)).sum()

    def mean(self) -> torch.Tensor:
        return self.df * self.scale()

    def cov(self) -> torch.Tensor:
        """Variances of the entries: df * (V_ij^2 + V_ii V_jj)."""
        V = self.scale()
        diag = torch.diagonal(V)
        return self.df * (V ** 2 + torch.outer(diag, diag))

    def is_proper(self) -> bool:
        eta1, eta2 = self._eta
        if not (torch.isfinite(eta1).all() and torch.isfinite(eta2)):
            return False
        if self.df <= self.dim - 1:
            return False
        _, info = torch.linalg.cholesky_ex(self.inv_scale())
        return bool(info == 0)

    def log_normalizer(self) -> torch.Tensor:
        d = self.dim
        df = self.df
        return (
            0.5 * df * d * math.log(2.0)
            + 0.5 * df * self._logdet_scale()
            + torch.mvlgamma(0.5 * df, p=d)
        )

    def _expect_x(self) -> torch.Tensor:
        return self.mean()

    def _expect_log(self) -> torch.Tensor:
        d = self.dim
        offsets = torch.arange(d, dtype=self.df.dtype)
        return (
            torch.digamma(0.5 * (self.df - offsets)).sum()
            + d * math.log(2.0)
            + self._logdet_scale()
        )

    def _describe(self) -> dict:
        return {"df": float(self.df), "dim": self.dim}
