"""
Gaussian random walk (linear-Gaussian state-space) model.

Classes
-------
GaussianRandomWalkModel
    Latent random walk observed with Gaussian noise.
"""

from typing import Tuple

import torch
from torch.distributions import MultivariateNormal

from ..distributions import MvNormal, Normal, as_tensor
from ..graph import ModelSpecification
from ..inference import Constraints
from .base import BaseModel


class GaussianRandomWalkModel(BaseModel):
    """
    Latent Gaussian random walk with noisy observations.

    Model::

        x_0 ~ N(0, initial_var)
        x_t ~ N(x_{t-1}, 1 / process_precision),   t = 1, ..., T-1
        y_t ~ N(x_t, 1 / obs_precision)

    Parameters
    ----------
    n_steps : int
        Number of time steps T.
    process_precision : float, default=1.0
        Precision of the random-walk increments.
    obs_precision : float, default=1.0
        Observation precision.
    initial_var : float, default=100.0
        Prior variance of the first state.
    structured : bool, default=True
        Whether ``constraints`` keeps all states in one joint group. With
        False the states are updated mean-field.
    seed : int, default=42
        Random seed for data generation.

    Notes
    -----
    With the structured constraint one sweep yields the exact smoothing
    posterior, and the free energy equals -log p(y).
    """

    def __init__(
        self,
        n_steps: int,
        process_precision: float = 1.0,
        obs_precision: float = 1.0,
        initial_var: float = 100.0,
        structured: bool = True,
        seed: int = 42
    ):
        super().__init__(seed=seed)
        if n_steps < 2:
            raise ValueError("A random walk needs at least two steps")
        if process_precision <= 0 or obs_precision <= 0 or initial_var <= 0:
            raise ValueError("Precisions and variances must be positive")
        self.T = int(n_steps)
        self.process_precision = float(process_precision)
        self.obs_precision = float(obs_precision)
        self.initial_var = float(initial_var)
        self.structured = structured

    def generate_data(
        self,
        n: int = None,
        return_latents: bool = False
    ):
        """
        Simulate the walk and its observations.

        Parameters
        ----------
        n : int, optional
            Ignored unless given; must equal ``n_steps``.
        return_latents : bool, default=False
            Also return the latent states.
        """
        if n is not None and n != self.T:
            raise ValueError(f"Model has {self.T} steps, got n={n}")
        increments = self._randn(self.T) / self.process_precision ** 0.5
        increments[0] = self._randn(()) * self.initial_var ** 0.5
        x = torch.cumsum(increments, dim=0)
        y = x + self._randn(self.T) / self.obs_precision ** 0.5
        if return_latents:
            return y, x
        return y

    def specification(self, data) -> ModelSpecification:
        if len(data) != self.T:
            raise ValueError(f"Expected {self.T} observations, got {len(data)}")
        spec = (
            ModelSpecification()
            .latent("x", "normal", size=self.T)
            .observed("q", self.process_precision)
            .observed("r", self.obs_precision)
            .observed("y", data, family="normal", array=True)
            .relate("prior", "x[0]", distribution=Normal(0.0, self.initial_var))
        )
        for t in range(1, self.T):
            spec.relate("normal", f"x[{t}]", f"x[{t - 1}]", "q")
        for t in range(self.T):
            spec.relate("normal", f"y[{t}]", f"x[{t}]", "r")
        return spec

    def initial_marginals(self, data):
        return {"x": Normal(0.0, 1.0)}

    def constraints(self) -> Constraints:
        if self.structured:
            return Constraints.structured([["x"]])
        return Constraints.mean_field()

    def _prior_precision(self) -> torch.Tensor:
        T = self.T
        J = torch.zeros(T, T, dtype=torch.float64)
        J[0, 0] = 1.0 / self.initial_var
        q = self.process_precision
        for t in range(1, T):
            J[t, t] += q
            J[t - 1, t - 1] += q
            J[t, t - 1] -= q
            J[t - 1, t] -= q
        return J

    def exact_posterior(self, data) -> MvNormal:
        """Exact joint posterior p(x | y)."""
        y = as_tensor(data)
        J = self._prior_precision() + self.obs_precision * torch.eye(self.T, dtype=y.dtype)
        return MvNormal.from_mean_precision(
            torch.linalg.solve(J, self.obs_precision * y), J
        )

    def exact_moments(self, data) -> Tuple[torch.Tensor, torch.Tensor]:
        """Posterior means and variances of the individual states."""
        posterior = self.exact_posterior(data)
        return posterior.mean(), torch.diagonal(posterior.cov())

    def log_evidence(self, data) -> torch.Tensor:
        """Log marginal likelihood log p(y)."""
        y = as_tensor(data)
        prior_cov = torch.linalg.inv(self._prior_precision())
        cov = prior_cov + torch.eye(self.T, dtype=y.dtype) / self.obs_precision
        cov = 0.5 * (cov + cov.T)
        loc = torch.zeros(self.T, dtype=y.dtype)
        return MultivariateNormal(loc, covariance_matrix=cov).log_prob(y)
