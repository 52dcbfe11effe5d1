"""
One-dimensional Gaussian mixture model.

Classes
-------
GaussianMixtureModel
    K-component mixture with unknown means, precisions and weights.
"""

from typing import Optional, Sequence

import numpy as np
import torch

from ..distributions import (
    Bernoulli,
    Beta,
    Categorical,
    Dirichlet,
    Gamma,
    Normal,
    as_tensor
)
from ..graph import ModelSpecification
from .base import BaseModel

CATEGORICAL = "categorical"
BERNOULLI = "bernoulli"


class GaussianMixtureModel(BaseModel):
    """
    Gaussian mixture with conjugate priors.

    Model::

        p ~ Dirichlet(1, ..., 1)            (Beta(1, 1) for a binary switch)
        m_k ~ N(0, prior_var)
        w_k ~ Gamma(1, 1)
        z_i ~ Cat(p)
        y_i ~ N(m_{z_i}, 1 / w_{z_i})

    Parameters
    ----------
    means : sequence of float, default=(-3.0, 2.0)
        Generating component means; their number sets K.
    precision : float, default=1.0
        Generating precision of every component.
    weights : sequence of float, optional
        Generating mixture weights (uniform by default).
    switch : {"categorical", "bernoulli"}, default="categorical"
        Family of the assignment variables. ``"bernoulli"`` needs K = 2;
        z_i = 1 selects the second component.
    prior_var : float, default=100.0
        Prior variance of the component means.
    init_means : sequence of float, optional
        Means of the initial component marginals. Defaults to evenly
        spaced values in [-2, 2]; distinct values break the label
        symmetry of the mixture.
    seed : int, default=42
        Random seed for data generation.

    Notes
    -----
    The assignment variables are declared first, so a sequential sweep
    updates them from the initial component marginals before the
    components are refitted.

    Examples
    --------
    >>> model = GaussianMixtureModel(means=(-3.0, 2.0))
    >>> y = model.generate_data(100)
    >>> result = model.session(y).run(iterations=20, free_energy=True)
    >>> model.component_means(result)
    """

    def __init__(
        self,
        means: Sequence[float] = (-3.0, 2.0),
        precision: float = 1.0,
        weights: Optional[Sequence[float]] = None,
        switch: str = CATEGORICAL,
        prior_var: float = 100.0,
        init_means: Optional[Sequence[float]] = None,
        seed: int = 42
    ):
        super().__init__(seed=seed)
        self.means = as_tensor(list(means))
        self.K = len(self.means)
        if self.K < 2:
            raise ValueError("A mixture needs at least two components")
        if switch not in (CATEGORICAL, BERNOULLI):
            raise ValueError(f"Unknown switch family '{switch}'")
        if switch == BERNOULLI and self.K != 2:
            raise ValueError("A Bernoulli switch needs exactly two components")
        if precision <= 0 or prior_var <= 0:
            raise ValueError("Precisions and variances must be positive")

        if weights is None:
            weights = np.full(self.K, 1.0 / self.K)
        weights = np.asarray(weights, dtype=np.float64)
        if weights.shape != (self.K,) or np.any(weights < 0):
            raise ValueError("weights must be K non-negative values")
        self.weights = torch.from_numpy(weights / weights.sum())

        if init_means is None:
            init_means = np.linspace(-2.0, 2.0, self.K)
        if len(init_means) != self.K:
            raise ValueError("init_means must have one value per component")

        self.precision = float(precision)
        self.switch = switch
        self.prior_var = float(prior_var)
        self.init_means = [float(m) for m in init_means]

    def generate_data(self, n: int, return_labels: bool = False):
        """
        Draw ``n`` observations.

        Parameters
        ----------
        n : int
            Number of observations.
        return_labels : bool, default=False
            Also return the generating component of every observation.
        """
        labels = torch.multinomial(
            self.weights, n, replacement=True, generator=self.generator
        )
        y = self.means[labels] + self._randn(n) / self.precision ** 0.5
        if return_labels:
            return y, labels
        return y

    def _component_names(self):
        return (
            [f"m{k + 1}" for k in range(self.K)],
            [f"w{k + 1}" for k in range(self.K)]
        )

    def specification(self, data) -> ModelSpecification:
        n = len(data)
        m_names, w_names = self._component_names()

        spec = ModelSpecification().latent("z", self.switch, size=n)
        for name in m_names:
            spec.latent(name, "normal")
        for name in w_names:
            spec.latent(name, "gamma")
        if self.switch == CATEGORICAL:
            spec.latent("p", "dirichlet")
            spec.relate("prior", "p", distribution=Dirichlet(torch.ones(self.K)))
        else:
            spec.latent("p", "beta")
            spec.relate("prior", "p", distribution=Beta(1.0, 1.0))
        spec.observed("y", data, family="normal", array=True)

        for name in m_names:
            spec.relate("prior", name, distribution=Normal(0.0, self.prior_var))
        for name in w_names:
            spec.relate("prior", name, distribution=Gamma(1.0, 1.0))
        for i in range(n):
            spec.relate(self.switch, f"z[{i}]", "p")
            spec.relate(
                "normal_mixture", f"y[{i}]", f"z[{i}]", *m_names, *w_names,
                n_components=self.K
            )
        return spec

    def initial_marginals(self, data):
        m_names, w_names = self._component_names()
        if self.switch == CATEGORICAL:
            marginals = {
                "z": Categorical(torch.full((self.K,), 1.0 / self.K)),
                "p": Dirichlet(torch.ones(self.K))
            }
        else:
            marginals = {"z": Bernoulli(0.5), "p": Beta(1.0, 1.0)}
        for name, mean in zip(m_names, self.init_means):
            marginals[name] = Normal(mean, 1.0)
        for name in w_names:
            marginals[name] = Gamma(1.0, 1.0)
        return marginals

    def component_means(self, result) -> torch.Tensor:
        """Posterior means of the component locations."""
        m_names, _ = self._component_names()
        return torch.stack([result.posterior(name).mean() for name in m_names])

    def component_precisions(self, result) -> torch.Tensor:
        """Posterior means of the component precisions."""
        _, w_names = self._component_names()
        return torch.stack([result.posterior(name).mean() for name in w_names])

    def responsibilities(self, result) -> torch.Tensor:
        """Posterior assignment probabilities, shape (n, K)."""
        rows = []
        for q in result.posterior("z"):
            p = q.mean()
            rows.append(torch.stack([1.0 - p, p]) if p.ndim == 0 else p)
        return torch.stack(rows)
