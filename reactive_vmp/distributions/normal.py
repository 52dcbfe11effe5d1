"""
Gaussian families.

Classes
-------
Normal
    Univariate Gaussian, natural parameters (mu / sigma^2, -1 / (2 sigma^2)).
MvNormal
    Multivariate Gaussian, natural parameters (Lambda mu, -Lambda / 2).
"""

import torch

from .base import LOG_2PI, ExponentialFamily, as_tensor


class Normal(ExponentialFamily):
    """
    Univariate Gaussian distribution.

    Parameters
    ----------
    mean : float, default=0.0
        Mean.
    var : float, default=1.0
        Variance.

    Examples
    --------
    >>> q = Normal(0.0, 4.0)
    >>> r = Normal.from_mean_precision(1.0, 0.25)
    >>> q.prod(r).mean()
    tensor(0.5000, dtype=torch.float64)
    """

    family = "normal"
    statistics = ("x", "xx")

    def __init__(self, mean=0.0, var=1.0):
        mean = as_tensor(mean)
        var = as_tensor(var)
        self._eta = (mean / var, -0.5 / var)

    @classmethod
    def from_mean_precision(cls, mean, precision) -> "Normal":
        """Build from mean and precision (inverse variance)."""
        mean = as_tensor(mean)
        precision = as_tensor(precision)
        return cls.from_natural(mean * precision, -0.5 * precision)

    def precision(self) -> torch.Tensor:
        return -2.0 * self._eta[1]

    def mean(self) -> torch.Tensor:
        return self._eta[0] / self.precision()

    def var(self) -> torch.Tensor:
        return 1.0 / self.precision()

    def cov(self) -> torch.Tensor:
        return self.var()

    def is_proper(self) -> bool:
        eta1, eta2 = self._eta
        return bool(
            torch.isfinite(eta1) and torch.isfinite(eta2) and eta2 < 0
        )

    def log_normalizer(self) -> torch.Tensor:
        eta1, eta2 = self._eta
        return -eta1 ** 2 / (4.0 * eta2) - 0.5 * torch.log(-2.0 * eta2)

    def log_base_measure(self) -> float:
        return -0.5 * LOG_2PI

    def _expect_x(self) -> torch.Tensor:
        return self.mean()

    def _expect_xx(self) -> torch.Tensor:
        return self.mean() ** 2 + self.var()

    def _describe(self) -> dict:
        if not self.is_proper():
            return super()._describe()
        return {"mean": float(self.mean()), "var": float(self.var())}


class MvNormal(ExponentialFamily):
    """
    Multivariate Gaussian distribution.

    Parameters
    ----------
    mean : array-like
        Mean vector, shape (d,).
    cov : array-like
        Covariance matrix, shape (d, d).

    Notes
    -----
    Properness is checked with a Cholesky factorisation of the precision
    matrix; an indefinite precision makes ``is_proper`` return False.
    """

    family = "mv_normal"
    statistics = ("x", "xx")

    def __init__(self, mean, cov):
        mean = as_tensor(mean)
        cov = as_tensor(cov)
        precision = torch.linalg.inv(cov)
        precision = 0.5 * (precision + precision.T)
        self._eta = (precision @ mean, -0.5 * precision)

    @classmethod
    def from_mean_precision(cls, mean, precision) -> "MvNormal":
        """Build from mean vector and precision matrix."""
        mean = as_tensor(mean)
        precision = as_tensor(precision)
        return cls.from_natural(precision @ mean, -0.5 * precision)

    @classmethod
    def from_natural(cls, eta1, eta2) -> "MvNormal":
        eta2 = as_tensor(eta2)
        if eta2.ndim == 2:
            eta2 = 0.5 * (eta2 + eta2.T)
        return super().from_natural(eta1, eta2)

    @property
    def dim(self) -> int:
        return self._eta[0].shape[0]

    def precision(self) -> torch.Tensor:
        return -2.0 * self._eta[1]

    def _cholesky(self) -> torch.Tensor:
        return torch.linalg.cholesky(self.precision())

    def mean(self) -> torch.Tensor:
        L = self._cholesky()
        return torch.cholesky_solve(self._eta[0].unsqueeze(-1), L).squeeze(-1)

    def cov(self) -> torch.Tensor:
        return torch.cholesky_inverse(self._cholesky())

    def is_proper(self) -> bool:
        eta1, eta2 = self._eta
        if eta2.ndim != 2 or eta1.shape[0] != eta2.shape[0]:
            return False
        if not (torch.isfinite(eta1).all() and torch.isfinite(eta2).all()):
            return False
        precision = -2.0 * eta2
        if not torch.allclose(precision, precision.T, atol=1e-10):
            return False
        _, info = torch.linalg.cholesky_ex(precision)
        return bool(info == 0)

    def log_normalizer(self) -> torch.Tensor:
        L = self._cholesky()
        mean = torch.cholesky_solve(self._eta[0].unsqueeze(-1), L).squeeze(-1)
        return 0.5 * self._eta[0] @ mean - torch.log(torch.diagonal(L)).sum()

    def log_base_measure(self) -> float:
        return -0.5 * self.dim * LOG_2PI

    def _expect_x(self) -> torch.Tensor:
        return self.mean()

    def _expect_xx(self) -> torch.Tensor:
        mean = self.mean()
        return self.cov() + torch.outer(mean, mean)

    def _describe(self) -> dict:
        return {"dim": self.dim}
