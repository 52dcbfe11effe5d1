"""
Conjugate Gaussian-mean model.

Classes
-------
ConjugateNormalModel
    Unknown mean (and optionally unknown precision) of i.i.d. Gaussian data.
"""

import torch
from torch.distributions import MultivariateNormal

from ..distributions import Gamma, Normal, as_tensor
from ..graph import ModelSpecification
from .base import BaseModel


class ConjugateNormalModel(BaseModel):
    """
    Gaussian data with unknown mean.

    Model::

        m ~ N(prior_mean, prior_var)
        tau ~ Gamma(shape, rate)          (learn_precision=True)
        y_i ~ N(m, 1 / tau)

    With a known precision the posterior of ``m`` is available in closed
    form, and one mean-field sweep reproduces it exactly.

    Parameters
    ----------
    true_mean : float, default=1.5
        Mean used to generate data.
    noise_precision : float, default=1.0
        Observation precision (generating value, and the fixed value when
        the precision is not learned).
    prior_mean, prior_var : float
        Gaussian prior on the mean.
    learn_precision : bool, default=False
        Treat the precision as a latent Gamma variable.
    precision_prior : tuple, default=(1.0, 1.0)
        Shape and rate of the Gamma prior on the precision.
    seed : int, default=42
        Random seed for data generation.

    Examples
    --------
    >>> model = ConjugateNormalModel(true_mean=2.0)
    >>> y = model.generate_data(50)
    >>> result = model.session(y).run(iterations=1)
    >>> result.posterior("m")
    """

    def __init__(
        self,
        true_mean: float = 1.5,
        noise_precision: float = 1.0,
        prior_mean: float = 0.0,
        prior_var: float = 100.0,
        learn_precision: bool = False,
        precision_prior: tuple = (1.0, 1.0),
        seed: int = 42
    ):
        super().__init__(seed=seed)
        if noise_precision <= 0 or prior_var <= 0:
            raise ValueError("Precisions and variances must be positive")
        self.true_mean = float(true_mean)
        self.noise_precision = float(noise_precision)
        self.prior_mean = float(prior_mean)
        self.prior_var = float(prior_var)
        self.learn_precision = learn_precision
        self.precision_prior = tuple(float(v) for v in precision_prior)

    def generate_data(self, n: int) -> torch.Tensor:
        """Draw ``n`` observations."""
        noise = self._randn(n) / self.noise_precision ** 0.5
        return self.true_mean + noise

    def specification(self, data) -> ModelSpecification:
        spec = ModelSpecification().latent("m", "normal")
        if self.learn_precision:
            spec.latent("tau", "gamma")
        else:
            spec.observed("tau", self.noise_precision)
        spec.observed("y", data, family="normal", array=True)

        spec.relate("prior", "m", distribution=Normal(self.prior_mean, self.prior_var))
        if self.learn_precision:
            spec.relate("prior", "tau", distribution=Gamma(*self.precision_prior))
        for i in range(len(data)):
            spec.relate("normal", f"y[{i}]", "m", "tau")
        return spec

    def initial_marginals(self, data):
        marginals = {"m": Normal(0.0, 1.0)}
        if self.learn_precision:
            marginals["tau"] = Gamma(*self.precision_prior)
        return marginals

    def analytic_posterior(self, data) -> Normal:
        """Exact posterior of the mean for a known precision."""
        y = as_tensor(data)
        precision = 1.0 / self.prior_var + len(y) * self.noise_precision
        shift = self.prior_mean / self.prior_var + self.noise_precision * y.sum()
        return Normal.from_mean_precision(shift / precision, precision)

    def log_evidence(self, data) -> torch.Tensor:
        """
        Log marginal likelihood log p(y) for a known precision.

        The data are jointly Gaussian with mean ``prior_mean`` and
        covariance ``prior_var * 11^T + I / noise_precision``.
        """
        if self.learn_precision:
            raise ValueError("The evidence is only closed-form for a known precision")
        y = as_tensor(data)
        n = len(y)
        cov = (
            self.prior_var * torch.ones(n, n, dtype=y.dtype)
            + torch.eye(n, dtype=y.dtype) / self.noise_precision
        )
        loc = torch.full((n,), self.prior_mean, dtype=y.dtype)
        return MultivariateNormal(loc, covariance_matrix=cov).log_prob(y)
