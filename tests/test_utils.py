"""
Tests for utility functions.

Tests diagnostics, alignment, and metrics modules.
"""

import pytest
import torch
import numpy as np

from reactive_vmp.distributions import Normal
from reactive_vmp.inference import infer
from reactive_vmp.utils import (
    # Diagnostics
    free_energy_differences,
    is_non_increasing,
    track_convergence,
    compute_free_energy_gap,
    posterior_moments,
    print_diagnostic_summary,
    compare_methods,
    # Alignment
    align_components,
    compute_alignment_error,
    # Metrics
    posterior_means,
    posterior_error,
    posterior_rmse,
    posterior_correlation,
    assignment_accuracy,
    relative_error,
    compute_coverage
)


@pytest.fixture
def simple_result(simple_spec):
    """Three-iteration result with free-energy history."""
    return infer(
        simple_spec, initial_marginals={"m": Normal()}, iterations=3,
        free_energy=True
    )


class TestDiagnostics:
    """Tests for diagnostic functions."""

    def test_free_energy_differences(self):
        """Test successive differences."""
        diffs = free_energy_differences([10.0, 7.0, 6.5, 6.5])
        assert np.allclose(diffs, [-3.0, -0.5, 0.0])

    def test_is_non_increasing(self):
        """Test monotonicity check."""
        assert is_non_increasing([5.0, 4.0, 4.0, 3.0])
        assert not is_non_increasing([5.0, 4.0, 4.5])
        assert is_non_increasing([5.0, 5.0 + 1e-10], atol=1e-8)

    def test_track_convergence(self):
        """Test stabilisation check."""
        history = [10.0, 5.0, 4.0] + [3.0] * 6
        assert track_convergence(history, window_size=5)
        assert not track_convergence(history[:5], window_size=5)
        assert not track_convergence([10.0, 5.0, 1.0, 0.0, -1.0, -2.0], window_size=3)
        with pytest.raises(ValueError):
            track_convergence(history, window_size=0)

    def test_free_energy_gap(self):
        """Test gap to the negative log evidence."""
        assert compute_free_energy_gap([12.0, 10.5], log_evidence=-10.0) == pytest.approx(0.5)
        assert compute_free_energy_gap([12.0], log_evidence=None) is None
        assert compute_free_energy_gap([], log_evidence=-1.0) is None

    def test_posterior_moments(self, random_walk_data):
        """Test moments of scalar and array posteriors."""
        model = random_walk_data['model']
        result = model.session(random_walk_data['y']).run(iterations=1)
        moments = posterior_moments(result, ["x", "x[0]"])
        mean, var = moments["x"]
        assert mean.shape == var.shape == (model.T,)
        assert moments["x[0]"][0].item() == pytest.approx(mean[0].item())

    def test_print_diagnostic_summary(self, simple_result, capsys):
        """Test printed summary."""
        print_diagnostic_summary("Mean field", simple_result, names=["m"], log_evidence=-3.0)
        output = capsys.readouterr().out
        assert "Diagnostic Summary: Mean field" in output
        assert "Terminal state:       iteration_limit_reached" in output
        assert "Final free energy:" in output
        assert "Gap to -log evidence" in output
        assert "m " in output

    def test_print_final_only(self, simple_result, capsys):
        """Test that final_only suppresses the initial value."""
        print_diagnostic_summary("Mean field", simple_result, final_only=True)
        output = capsys.readouterr().out
        assert "Initial free energy" not in output
        assert "Final free energy" in output

    def test_compare_methods(self, random_walk_data, capsys):
        """Test comparison of structured and mean-field runs."""
        model = random_walk_data['model']
        y = random_walk_data['y']
        results = {
            'Structured': model.session(y).run(iterations=1, free_energy=True),
            'Mean field': model.session(y, constraints="mean_field").run(
                iterations=20, free_energy=True
            )
        }
        scores = compare_methods(results, truth={"x[0]": random_walk_data['x'][0].item()})
        output = capsys.readouterr().out
        assert "Method Comparison" in output
        assert "1. Structured" in output
        assert scores['Structured'] < scores['Mean field']


class TestAlignment:
    """Tests for label alignment."""

    def test_swap(self):
        """Test that swapped labels are recovered."""
        est = torch.tensor([2.1, -2.9], dtype=torch.float64)
        true = torch.tensor([-3.0, 2.0], dtype=torch.float64)
        aligned, perm = align_components(est, true)
        assert list(perm) == [1, 0]
        assert torch.allclose(aligned, torch.tensor([-2.9, 2.1], dtype=torch.float64))

    def test_identity(self):
        """Test that aligned inputs are left unchanged."""
        est = torch.tensor([[0.0, 1.0], [5.0, 5.0], [-4.0, 0.0]])
        aligned, perm = align_components(est, est.clone())
        assert list(perm) == [0, 1, 2]
        assert torch.equal(aligned, est)

    def test_alignment_error(self):
        """Test maximum error after alignment."""
        est = torch.tensor([2.1, -2.9])
        true = torch.tensor([-3.0, 2.0])
        assert compute_alignment_error(est, true) == pytest.approx(0.1, abs=1e-6)

    def test_shape_mismatch(self):
        """Test that shapes must agree."""
        with pytest.raises(ValueError):
            align_components(torch.zeros(2), torch.zeros(3))


class TestMetrics:
    """Tests for metric functions."""

    def test_posterior_means(self):
        """Test means of single, listed and tensor estimates."""
        q = [Normal(1.0, 2.0), Normal(-3.0, 0.5)]
        assert posterior_means(q[0]).item() == pytest.approx(1.0)
        assert torch.allclose(posterior_means(q), torch.tensor([1.0, -3.0], dtype=torch.float64))
        assert torch.equal(posterior_means([0.5, 1.5]), torch.tensor([0.5, 1.5], dtype=torch.float64))

    def test_posterior_errors(self):
        """Test squared, absolute and root errors of posterior means."""
        q = [Normal(1.0, 1.0), Normal(2.0, 1.0), Normal(5.0, 1.0)]
        truth = torch.tensor([1.0, 2.0, 3.0])
        assert posterior_error(q, truth) == pytest.approx(4.0 / 3.0)
        assert posterior_error(q, truth, squared=False) == pytest.approx(2.0 / 3.0)
        assert posterior_rmse(q, truth) == pytest.approx(np.sqrt(4.0 / 3.0))
        assert posterior_error(Normal(0.5, 1.0), 0.0) == pytest.approx(0.25)

    def test_posterior_errors_of_random_walk(self, seed):
        """Test that exact smoothing beats the raw observations."""
        from reactive_vmp.models import GaussianRandomWalkModel

        model = GaussianRandomWalkModel(
            n_steps=200, process_precision=4.0, obs_precision=0.25, seed=seed
        )
        y, x = model.generate_data(return_latents=True)
        posterior = model.session(y).run(iterations=1).posterior("x")
        assert posterior_rmse(posterior, x) < 0.5 * posterior_rmse(y, x)
        assert posterior_correlation(posterior, x) > 0.9

    def test_posterior_correlation(self):
        """Test correlation of linearly related values."""
        x = torch.randn(50, dtype=torch.float64)
        assert posterior_correlation(2.0 * x + 1.0, x) == pytest.approx(1.0)
        assert posterior_correlation([Normal(1.0, 1.0)], torch.tensor([2.0])) == 0.0

    def test_assignment_accuracy(self):
        """Test accuracy with and without a label permutation."""
        responsibilities = torch.tensor([[0.9, 0.1], [0.2, 0.8], [0.6, 0.4], [0.3, 0.7]])
        labels = torch.tensor([0, 1, 1, 1])
        assert assignment_accuracy(responsibilities, labels) == pytest.approx(0.75)
        assert assignment_accuracy(responsibilities, 1 - labels, [1, 0]) == pytest.approx(0.75)
        with pytest.raises(ValueError):
            assignment_accuracy(responsibilities, labels[:3])

    def test_relative_error(self):
        """Test relative error, including a zero reference."""
        assert relative_error(torch.tensor([3.0, 4.0]), torch.tensor([3.0, 4.0])) == 0.0
        assert relative_error(torch.tensor([3.0, 4.0]), torch.zeros(2)) == pytest.approx(1.0)
        assert relative_error(torch.zeros(2), torch.tensor([3.0, 4.0])) == pytest.approx(5.0)

    def test_coverage(self):
        """Test coverage of Gaussian intervals."""
        truth = torch.zeros(4)
        mean = torch.tensor([0.0, 0.5, 3.0, -0.1])
        var = torch.ones(4)
        assert compute_coverage(truth, mean, var, level=0.95) == pytest.approx(0.75)
        with pytest.raises(ValueError):
            compute_coverage(truth, mean, var, level=1.0)

    def test_coverage_of_exact_posterior(self, seed):
        """Test calibration of the random-walk posterior."""
        from reactive_vmp.models import GaussianRandomWalkModel

        hits = []
        for s in range(20):
            model = GaussianRandomWalkModel(n_steps=10, seed=seed + s)
            y, x = model.generate_data(return_latents=True)
            mean, var = model.exact_moments(y)
            hits.append(compute_coverage(x, mean, var, level=0.9))
        assert 0.75 < np.mean(hits) < 1.0
