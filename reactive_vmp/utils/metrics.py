"""
Metric utilities for evaluating posterior estimates.

Every function compares inference output with the values that generated
the data. Posterior arguments may be a single marginal, the list of
marginals returned by ``InferenceResult.posterior`` for an array, or a
tensor of point estimates.

Functions
---------
posterior_means
    Stack the means of posterior marginals.
posterior_error
    Mean squared (or absolute) error of posterior means.
posterior_rmse
    Root mean squared error of posterior means.
posterior_correlation
    Pearson correlation between posterior means and true values.
assignment_accuracy
    Fraction of observations assigned to their generating component.
relative_error
    Compute relative Frobenius error.
compute_coverage
    Coverage of Gaussian credible intervals.
"""

from typing import Optional, Sequence

import numpy as np
import torch
from scipy.stats import norm, pearsonr

from ..distributions import Distribution


def posterior_means(posterior) -> torch.Tensor:
    """Means of a marginal or a list of marginals; tensors pass through."""
    if isinstance(posterior, Distribution):
        return posterior.mean()
    if isinstance(posterior, (list, tuple)) and posterior and isinstance(
        posterior[0], Distribution
    ):
        return torch.stack([q.mean() for q in posterior])
    return torch.as_tensor(posterior, dtype=torch.float64)


def posterior_error(posterior, truth, squared: bool = True) -> float:
    """
    Mean error of posterior means against true values.

    Parameters
    ----------
    posterior : Distribution, list of Distribution or torch.Tensor
        Posterior marginal(s) or point estimates.
    truth : float or torch.Tensor
        True values, broadcastable to the posterior means.
    squared : bool, default=True
        Mean squared error if True, mean absolute error otherwise.

    Returns
    -------
    error : float
    """
    diff = posterior_means(posterior) - torch.as_tensor(truth, dtype=torch.float64)
    if diff.numel() == 0:
        return 0.0
    if squared:
        return (diff ** 2).mean().item()
    return diff.abs().mean().item()


def posterior_rmse(posterior, truth) -> float:
    """Root mean squared error of posterior means."""
    return float(np.sqrt(posterior_error(posterior, truth)))


def posterior_correlation(posterior, truth) -> float:
    """
    Pearson correlation between posterior means and true values.

    Returns 0.0 for fewer than two elements.
    """
    means = posterior_means(posterior).flatten()
    truth = torch.as_tensor(truth, dtype=torch.float64).flatten()
    if len(means) < 2:
        return 0.0
    corr, _ = pearsonr(means.cpu().numpy(), truth.cpu().numpy())
    return float(corr)


def assignment_accuracy(
    responsibilities: torch.Tensor,
    labels: torch.Tensor,
    permutation: Optional[Sequence[int]] = None
) -> float:
    """
    Fraction of observations whose most probable component is the one
    that generated them.

    Parameters
    ----------
    responsibilities : torch.Tensor
        Posterior assignment probabilities, shape (n, K).
    labels : torch.Tensor
        Generating component of every observation, shape (n,).
    permutation : sequence of int, optional
        Estimated component matched to each true component, as returned
        by ``align_components``. Identity if omitted.

    Returns
    -------
    accuracy : float
    """
    responsibilities = torch.as_tensor(responsibilities)
    labels = torch.as_tensor(labels)
    if responsibilities.ndim != 2 or responsibilities.shape[0] != labels.shape[0]:
        raise ValueError(
            f"responsibilities must be (n, K) with n = {labels.shape[0]}, "
            f"got {tuple(responsibilities.shape)}"
        )
    if permutation is not None:
        responsibilities = responsibilities[:, torch.as_tensor(list(permutation))]
    predicted = responsibilities.argmax(dim=1)
    return (predicted == labels).double().mean().item()


def relative_error(
    y_true: torch.Tensor,
    y_pred: torch.Tensor
) -> float:
    """
    Compute relative error ||y_true - y_pred|| / ||y_true||.

    Returns the absolute error norm when ``y_true`` is (numerically) zero.
    """
    y_true = torch.as_tensor(y_true)
    y_pred = torch.as_tensor(y_pred)
    diff = torch.linalg.norm((y_true - y_pred).flatten()).item()
    scale = torch.linalg.norm(y_true.flatten()).item()
    if scale < 1e-10:
        return diff
    return diff / scale


def compute_coverage(
    y_true: torch.Tensor,
    mean: torch.Tensor,
    var: torch.Tensor,
    level: float = 0.95
) -> float:
    """
    Fraction of true values inside central Gaussian credible intervals.

    Parameters
    ----------
    y_true : torch.Tensor
        True values.
    mean, var : torch.Tensor
        Posterior means and variances, same shape as ``y_true``.
    level : float, default=0.95
        Credible level of the intervals.

    Returns
    -------
    coverage : float
        Empirical coverage in [0, 1]. A calibrated posterior gives
        approximately ``level``.

    Examples
    --------
    >>> mean, var = model.exact_moments(y)
    >>> compute_coverage(x_true, mean, var, level=0.9)
    """
    if not 0 < level < 1:
        raise ValueError("level must be in (0, 1)")
    z = norm.ppf(0.5 + level / 2)
    y_true = torch.as_tensor(y_true, dtype=torch.float64)
    mean = torch.as_tensor(mean, dtype=torch.float64)
    std = torch.sqrt(torch.as_tensor(var, dtype=torch.float64))
    inside = torch.abs(y_true - mean) <= z * std
    return inside.double().mean().item()
