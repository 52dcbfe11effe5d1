"""
Shared fixtures for all tests.

This module provides common test fixtures including canonical models,
synthetic data and small hand-built graphs that are reused across
multiple test files.
"""

import pytest
import torch
import numpy as np

from reactive_vmp.distributions import Normal
from reactive_vmp.graph import ModelSpecification
from reactive_vmp.models import (
    ConjugateNormalModel,
    GaussianMixtureModel,
    GaussianRandomWalkModel,
    MvNormalWishartModel
)


@pytest.fixture
def seed():
    """Standard random seed for reproducibility."""
    return 42


@pytest.fixture(autouse=True)
def set_random_seeds(seed):
    """Automatically set random seeds before each test."""
    torch.manual_seed(seed)
    np.random.seed(seed)


@pytest.fixture
def conjugate_model(seed):
    """Gaussian-mean model with known precision."""
    return ConjugateNormalModel(true_mean=1.5, noise_precision=2.0, seed=seed)


@pytest.fixture
def conjugate_data(conjugate_model):
    """Twenty observations from the conjugate model."""
    return conjugate_model.generate_data(20)


@pytest.fixture
def random_walk_model(seed):
    """Eight-step Gaussian random walk."""
    return GaussianRandomWalkModel(
        n_steps=8, process_precision=2.0, obs_precision=1.0, seed=seed
    )


@pytest.fixture
def random_walk_data(random_walk_model):
    """Observations and latent states of the random walk."""
    y, x = random_walk_model.generate_data(return_latents=True)
    return {'y': y, 'x': x, 'model': random_walk_model}


@pytest.fixture
def mixture_model(seed):
    """Two-component mixture with means -3 and 2."""
    return GaussianMixtureModel(means=(-3.0, 2.0), precision=1.0, seed=seed)


@pytest.fixture
def mixture_data(mixture_model):
    """One hundred observations from the mixture."""
    y, labels = mixture_model.generate_data(100, return_labels=True)
    return {'y': y, 'labels': labels, 'model': mixture_model}


@pytest.fixture
def wishart_model(seed):
    """Two-dimensional Gaussian with unknown mean and precision."""
    return MvNormalWishartModel(
        true_mean=(1.0, -1.0),
        true_cov=[[1.0, 0.3], [0.3, 0.5]],
        seed=seed
    )


@pytest.fixture
def simple_spec():
    """m ~ N(0, 100), y_i ~ N(m, 1) for three observations."""
    spec = (
        ModelSpecification()
        .latent("m", "normal")
        .observed("tau", 1.0)
        .observed("y", [1.2, 0.8, 1.1], family="normal", array=True)
        .relate("prior", "m", distribution=Normal(0.0, 100.0))
    )
    for i in range(3):
        spec.relate("normal", f"y[{i}]", "m", "tau")
    return spec
