"""
Diagnostic utilities for inference results.

This module provides functions for summarising inference runs, checking
free-energy convergence and comparing runs on the same data.

Functions
---------
free_energy_differences
    Successive changes of a free-energy history.
is_non_increasing
    Check that a free-energy history never increases.
track_convergence
    Check whether a free-energy history has stabilised.
compute_free_energy_gap
    Gap between the final free energy and -log evidence.
posterior_moments
    Means and variances of selected posteriors.
print_diagnostic_summary
    Print formatted summary of an inference result.
compare_methods
    Compare several inference runs on the same data.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np
import torch

from .metrics import posterior_error


def free_energy_differences(free_energy: Sequence[float]) -> np.ndarray:
    """
    Successive differences F[k] - F[k-1].

    Parameters
    ----------
    free_energy : sequence of float
        Free-energy history (index 0 = initial marginals).

    Returns
    -------
    diffs : np.ndarray
        Array of length ``len(free_energy) - 1``.
    """
    return np.diff(np.asarray(free_energy, dtype=np.float64))


def is_non_increasing(free_energy: Sequence[float], atol: float = 1e-8) -> bool:
    """Whether every step of the history decreases F (up to ``atol``)."""
    diffs = free_energy_differences(free_energy)
    return bool(np.all(diffs <= atol))


def track_convergence(
    free_energy: Sequence[float],
    window_size: int = 5,
    threshold: float = 1e-4
) -> bool:
    """
    Check whether the free energy has stabilised.

    Parameters
    ----------
    free_energy : sequence of float
        Free-energy history.
    window_size : int, default=5
        Number of trailing differences inspected.
    threshold : float, default=1e-4
        Largest absolute change allowed within the window.

    Returns
    -------
    converged : bool
        True if the last ``window_size`` absolute changes are all below
        ``threshold``.
    """
    if window_size < 1:
        raise ValueError("window_size must be at least 1")
    diffs = free_energy_differences(free_energy)
    if len(diffs) < window_size:
        return False
    return bool(np.all(np.abs(diffs[-window_size:]) < threshold))


def compute_free_energy_gap(
    free_energy: Sequence[float],
    log_evidence: Optional[float] = None
) -> Optional[float]:
    """
    Compute F_final - (-log p(y)).

    Returns
    -------
    gap : float or None
        Non-negative up to numerical error (F bounds -log p(y) from
        above); zero at the exact posterior. None if the evidence is not
        provided or the history is empty.
    """
    if log_evidence is None or len(free_energy) == 0:
        return None
    return float(free_energy[-1]) + float(log_evidence)


def posterior_moments(result, names: Sequence[str]) -> Dict[str, tuple]:
    """
    Posterior means and (co)variances.

    Array names resolve to stacked element moments.
    """
    moments = {}
    for name in names:
        posterior = result.posterior(name)
        if isinstance(posterior, list):
            moments[name] = (
                torch.stack([q.mean() for q in posterior]),
                torch.stack([q.cov() for q in posterior])
            )
        else:
            moments[name] = (posterior.mean(), posterior.cov())
    return moments


def print_diagnostic_summary(
    method_name: str,
    result,
    names: Optional[Sequence[str]] = None,
    log_evidence: Optional[float] = None,
    final_only: bool = False
) -> None:
    """
    Print formatted diagnostic summary for an inference result.

    Parameters
    ----------
    method_name : str
        Label of the run.
    result : InferenceResult
        The inference result.
    names : sequence of str, optional
        Scalar variables whose posterior mean and variance are printed.
    log_evidence : float, optional
        Exact log p(y), used to report the free-energy gap.
    final_only : bool, default=False
        If True, only print the final free energy.

    Examples
    --------
    >>> print_diagnostic_summary("Mean field", result, names=["m1", "m2"])
    """
    print("\n" + "=" * 70)
    print(f"Diagnostic Summary: {method_name}")
    print("=" * 70)

    print(f"Terminal state:       {result.state.value}")
    print(f"Number of iterations: {result.iterations}")
    if result.error is not None:
        print(f"Error:                {result.error}")

    history = result.get_free_energy_history()
    if history:
        if not final_only:
            print(f"Initial free energy: {history[0]:12.4f}")
        print(f"Final free energy:   {history[-1]:12.4f}")
        if not final_only and len(history) > 1:
            print(f"Last change:         {history[-1] - history[-2]:12.2e}")

        gap = compute_free_energy_gap(history, log_evidence)
        if gap is not None:
            print(f"\nGap to -log evidence: {gap:.6f}")

    if names:
        print("\nPosteriors:")
        for name in names:
            q = result.posterior(name)
            print(
                f"  {name:10s} mean = {float(q.mean()):10.4f}   "
                f"var = {float(q.cov()):10.4f}"
            )

    print("=" * 70)


def compare_methods(
    results: Dict[str, object],
    truth: Optional[Dict[str, float]] = None
) -> Dict[str, float]:
    """
    Compare several inference runs on the same model and data.

    Parameters
    ----------
    results : dict
        Run label -> InferenceResult (with free-energy history).
    truth : dict, optional
        Variable (or array) name -> true value(s); reports the mean squared
        error of the posterior means per run.

    Returns
    -------
    final_free_energy : dict
        Run label -> final free energy.

    Examples
    --------
    >>> compare_methods({'Mean field': r1, 'Structured': r2})
    """
    print("\n" + "=" * 70)
    print("Method Comparison")
    print("=" * 70)

    scores = {}
    for label, result in results.items():
        history = result.get_free_energy_history()
        if history:
            scores[label] = history[-1]

    # lower free energy is a tighter bound
    ranked = sorted(scores.items(), key=lambda x: x[1])
    print("\nFinal free energy:")
    for rank, (label, score) in enumerate(ranked, 1):
        print(f"  {rank}. {label:20s}: {score:.6f}")

    if truth:
        print("\nPosterior mean squared error:")
        for label, result in results.items():
            error = np.mean([
                posterior_error(result.posterior(name), value)
                for name, value in truth.items()
            ])
            print(f"  {label:20s}: {error:.6f}")

    print("=" * 70)
    return scores
