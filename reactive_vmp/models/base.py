"""
Base class for canonical models.

A canonical model bundles a synthetic-data generator with everything an
inference session needs: the model specification bound to data, the
initial marginals and the factorisation constraints.

Classes
-------
BaseModel
    Abstract base class for canonical models.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

import torch

from ..graph import ModelSpecification
from ..inference import Constraints, InferenceSession


class BaseModel(ABC):
    """
    Abstract base class for canonical models.

    Parameters
    ----------
    seed : int, default=42
        Seed of the model's own random generator. Data generation never
        touches the global random state.

    Attributes
    ----------
    generator : torch.Generator
        Random source used by ``generate_data``.
    """

    def __init__(self, seed: int = 42):
        self.seed = seed
        self.generator = torch.Generator().manual_seed(seed)

    def reseed(self, seed: Optional[int] = None) -> None:
        """Reset the random generator (to the original seed by default)."""
        if seed is not None:
            self.seed = seed
        self.generator.manual_seed(self.seed)

    def _randn(self, *shape) -> torch.Tensor:
        return torch.randn(*shape, generator=self.generator, dtype=torch.float64)

    @abstractmethod
    def generate_data(self, n: int, **kwargs) -> torch.Tensor:
        """
        Generate synthetic observations from the model.

        Notes
        -----
        This method must be implemented by subclasses.
        """
        pass

    @abstractmethod
    def specification(self, data) -> ModelSpecification:
        """
        Model specification bound to ``data``.

        Notes
        -----
        This method must be implemented by subclasses.
        """
        pass

    @abstractmethod
    def initial_marginals(self, data) -> Dict[str, object]:
        """
        Initial marginals of every latent variable.

        Notes
        -----
        This method must be implemented by subclasses.
        """
        pass

    def constraints(self) -> Constraints:
        """Factorisation constraints; mean field unless overridden."""
        return Constraints.mean_field()

    def session(self, data, **kwargs) -> InferenceSession:
        """
        Inference session for ``data``.

        Keyword arguments override the model's constraints and initial
        marginals and are otherwise passed to ``InferenceSession``.
        """
        kwargs.setdefault("constraints", self.constraints())
        kwargs.setdefault("initial_marginals", self.initial_marginals(data))
        return InferenceSession(self.specification(data), **kwargs)
