"""
Point-mass distribution used as the marginal of observed variables.
"""

import torch

from ..exceptions import IncompatibleFamily
from .base import Distribution, as_tensor


class PointMass(Distribution):
    """
    Dirac distribution at ``value``.

    Observed data variables carry a point-mass marginal. Every statistic
    is evaluated at the value, the entropy is zero, and a product with any
    other message returns the point mass itself.

    Parameters
    ----------
    value : array-like
        Scalar, vector (e.g. a one-hot class label) or matrix.
    """

    family = "point_mass"

    def __init__(self, value):
        self.value = as_tensor(value)

    def mean(self) -> torch.Tensor:
        return self.value

    def cov(self) -> torch.Tensor:
        if self.value.ndim == 1:
            n = self.value.shape[0]
            return torch.zeros(n, n, dtype=self.value.dtype)
        return torch.zeros_like(self.value)

    def entropy(self) -> torch.Tensor:
        return torch.zeros((), dtype=self.value.dtype)

    def is_proper(self) -> bool:
        return True

    def prod(self, other: Distribution) -> Distribution:
        if isinstance(other, PointMass) and not torch.equal(other.value, self.value):
            raise IncompatibleFamily(
                "Cannot combine point masses at different locations"
            )
        return self

    def _expect_x(self) -> torch.Tensor:
        return self.value

    def _expect_xx(self) -> torch.Tensor:
        v = self.value
        if v.ndim == 0:
            return v * v
        if v.ndim == 1:
            return torch.outer(v, v)
        return v @ v.T

    def _expect_log(self) -> torch.Tensor:
        v = self.value
        if v.ndim == 2:
            return torch.logdet(v)
        return torch.log(v)

    def _expect_log1m(self) -> torch.Tensor:
        return torch.log1p(-self.value)

    def __repr__(self) -> str:
        if self.value.ndim == 0:
            return f"PointMass({float(self.value)})"
        return f"PointMass(shape={tuple(self.value.shape)})"
