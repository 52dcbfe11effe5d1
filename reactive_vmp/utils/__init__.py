"""
Utility functions for inference results.

This package provides utilities for diagnostics, label alignment and
metrics computation.

Modules
-------
diagnostics
    Free-energy convergence checks and printed summaries.
alignment
    Matching of mixture components to true parameters.
metrics
    Posterior-vs-truth error, correlation, accuracy and coverage.

Quick Import
------------
>>> from reactive_vmp.utils import (
...     print_diagnostic_summary,
...     align_components,
...     posterior_rmse
... )
"""

# Diagnostics
from .diagnostics import (
    free_energy_differences,
    is_non_increasing,
    track_convergence,
    compute_free_energy_gap,
    posterior_moments,
    print_diagnostic_summary,
    compare_methods
)

# Alignment
from .alignment import (
    align_components,
    compute_alignment_error
)

# Metrics
from .metrics import (
    posterior_means,
    posterior_error,
    posterior_rmse,
    posterior_correlation,
    assignment_accuracy,
    relative_error,
    compute_coverage
)

__all__ = [
    # Diagnostics
    'free_energy_differences',
    'is_non_increasing',
    'track_convergence',
    'compute_free_energy_gap',
    'posterior_moments',
    'print_diagnostic_summary',
    'compare_methods',
    # Alignment
    'align_components',
    'compute_alignment_error',
    # Metrics
    'posterior_means',
    'posterior_error',
    'posterior_rmse',
    'posterior_correlation',
    'assignment_accuracy',
    'relative_error',
    'compute_coverage'
]
