"""
Multivariate Gaussian with unknown mean and precision matrix.

Classes
-------
MvNormalWishartModel
    i.i.d. vector data with MvNormal mean and Wishart precision.
"""

from typing import Optional

import torch
from torch.distributions import MultivariateNormal

from ..distributions import MvNormal, Wishart, as_tensor
from ..graph import ModelSpecification
from .base import BaseModel


class MvNormalWishartModel(BaseModel):
    """
    Multivariate Gaussian data with unknown mean and precision.

    Model::

        mu ~ N(0, prior_var * I)
        Lambda ~ Wishart(dim + 2, I)
        y_i ~ N(mu, Lambda^-1)

    Parameters
    ----------
    true_mean : array-like
        Generating mean, shape (d,).
    true_cov : array-like, optional
        Generating covariance (identity by default).
    prior_var : float, default=100.0
        Prior variance of every mean coordinate.
    seed : int, default=42
        Random seed for data generation.
    """

    def __init__(
        self,
        true_mean=(1.0, -1.0),
        true_cov=None,
        prior_var: float = 100.0,
        seed: int = 42
    ):
        super().__init__(seed=seed)
        self.true_mean = as_tensor(true_mean)
        self.d = self.true_mean.shape[0]
        if true_cov is None:
            true_cov = torch.eye(self.d, dtype=torch.float64)
        self.true_cov = as_tensor(true_cov)
        if self.true_cov.shape != (self.d, self.d):
            raise ValueError("true_cov must be a (d, d) matrix")
        if prior_var <= 0:
            raise ValueError("prior_var must be positive")
        self.prior_var = float(prior_var)

    def generate_data(self, n: int) -> torch.Tensor:
        """Draw ``n`` observations, shape (n, d)."""
        L = torch.linalg.cholesky(self.true_cov)
        return self.true_mean + self._randn(n, self.d) @ L.T

    def _eye(self) -> torch.Tensor:
        return torch.eye(self.d, dtype=torch.float64)

    def specification(self, data) -> ModelSpecification:
        data = as_tensor(data)
        if data.ndim != 2 or data.shape[1] != self.d:
            raise ValueError(f"Expected data of shape (n, {self.d})")
        spec = (
            ModelSpecification()
            .latent("mu", "mv_normal")
            .latent("Lambda", "wishart")
            .observed("y", data, array=True)
            .relate(
                "prior", "mu",
                distribution=MvNormal(torch.zeros(self.d), self.prior_var * self._eye())
            )
            .relate("prior", "Lambda", distribution=Wishart(self.d + 2, self._eye()))
        )
        for i in range(data.shape[0]):
            spec.relate("mv_normal", f"y[{i}]", "mu", "Lambda")
        return spec

    def initial_marginals(self, data):
        return {
            "mu": MvNormal(torch.zeros(self.d), self._eye()),
            "Lambda": Wishart(self.d + 2, self._eye())
        }

    def sample_moments(self, data, ddof: Optional[int] = 0):
        """Sample mean and covariance of the data."""
        data = as_tensor(data)
        mean = data.mean(dim=0)
        centered = data - mean
        cov = centered.T @ centered / (data.shape[0] - ddof)
        return mean, cov

    def log_likelihood(self, data, mean, precision) -> torch.Tensor:
        """Log-likelihood of the data at a point estimate."""
        return MultivariateNormal(
            as_tensor(mean), precision_matrix=as_tensor(precision)
        ).log_prob(as_tensor(data)).sum()
