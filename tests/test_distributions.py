"""
Tests for the distribution/message algebra.

Tests products, expectations, entropies and KL divergences of every
family against closed forms and torch.distributions.
"""

import math

import pytest
import torch
import numpy as np
import torch.distributions as td

from reactive_vmp.distributions import (
    Bernoulli,
    Beta,
    Categorical,
    Dirichlet,
    Gamma,
    MvNormal,
    Normal,
    PointMass,
    Wishart,
    FAMILIES,
    kl_divergence,
    prod_all,
    resolve_family
)
from reactive_vmp.exceptions import ImproperDistribution, IncompatibleFamily


def _t(x):
    return torch.as_tensor(x, dtype=torch.float64)


class TestNormal:
    """Tests for the univariate Gaussian."""

    def test_moments(self):
        """Test mean, variance and second moment."""
        q = Normal(1.5, 4.0)
        assert torch.isclose(q.mean(), _t(1.5))
        assert torch.isclose(q.var(), _t(4.0))
        assert torch.isclose(q.precision(), _t(0.25))
        assert torch.isclose(q.expectation("xx"), _t(1.5 ** 2 + 4.0))

    def test_product_matches_closed_form(self):
        """Test that the product adds precisions and precision-weighted means."""
        a = Normal(0.0, 4.0)
        b = Normal.from_mean_precision(1.0, 0.25)
        c = a.prod(b)
        assert torch.isclose(c.precision(), _t(0.5))
        assert torch.isclose(c.mean(), _t(0.5))

    def test_entropy_matches_torch(self):
        """Test entropy against torch.distributions."""
        q = Normal(-0.3, 2.5)
        expected = td.Normal(_t(-0.3), _t(2.5).sqrt()).entropy()
        assert torch.isclose(q.entropy(), expected)

    def test_kl_matches_torch(self):
        """Test KL divergence against torch.distributions."""
        q, p = Normal(0.2, 0.5), Normal(-1.0, 3.0)
        expected = td.kl_divergence(
            td.Normal(_t(0.2), _t(0.5).sqrt()),
            td.Normal(_t(-1.0), _t(3.0).sqrt())
        )
        assert torch.isclose(kl_divergence(q, p), expected)

    def test_kl_self_is_zero(self):
        """Test KL(q || q) = 0."""
        q = Normal(0.7, 1.3)
        assert abs(kl_divergence(q, q).item()) < 1e-12

    def test_log_normalizer(self):
        """Test A(eta) for the standard normal."""
        q = Normal(0.0, 1.0)
        assert torch.isclose(q.log_normalizer(), _t(0.0))
        assert q.log_base_measure() == pytest.approx(-0.5 * math.log(2 * math.pi))

    def test_improper(self):
        """Test properness checks on a positive second natural parameter."""
        q = Normal.from_natural(0.0, 0.5)
        assert not q.is_proper()
        with pytest.raises(ImproperDistribution):
            q.ensure_proper()


class TestMvNormal:
    """Tests for the multivariate Gaussian."""

    def test_moments(self):
        """Test mean, covariance and E[x x^T]."""
        mean = _t([1.0, -2.0])
        cov = _t([[2.0, 0.5], [0.5, 1.0]])
        q = MvNormal(mean, cov)
        assert q.dim == 2
        assert torch.allclose(q.mean(), mean)
        assert torch.allclose(q.cov(), cov)
        assert torch.allclose(q.expectation("xx"), cov + torch.outer(mean, mean))

    def test_entropy_matches_torch(self):
        """Test entropy against torch.distributions."""
        mean = _t([0.3, 0.1, -0.4])
        cov = _t([[1.0, 0.2, 0.0], [0.2, 2.0, 0.3], [0.0, 0.3, 0.5]])
        expected = td.MultivariateNormal(mean, covariance_matrix=cov).entropy()
        assert torch.isclose(MvNormal(mean, cov).entropy(), expected)

    def test_product(self):
        """Test that the product adds precision matrices."""
        a = MvNormal.from_mean_precision(_t([1.0, 0.0]), torch.eye(2, dtype=torch.float64))
        b = MvNormal.from_mean_precision(_t([0.0, 1.0]), torch.eye(2, dtype=torch.float64))
        c = a.prod(b)
        assert torch.allclose(c.precision(), 2 * torch.eye(2, dtype=torch.float64))
        assert torch.allclose(c.mean(), _t([0.5, 0.5]))

    def test_indefinite_precision_is_improper(self):
        """Test that an indefinite precision matrix fails the properness check."""
        q = MvNormal.from_natural(torch.zeros(2), -0.5 * _t([[1.0, 2.0], [2.0, 1.0]]))
        assert not q.is_proper()
        with pytest.raises(ImproperDistribution):
            prod_all([q])

    def test_kl_matches_torch(self):
        """Test KL divergence against torch.distributions."""
        q = MvNormal(_t([0.0, 1.0]), _t([[1.0, 0.3], [0.3, 0.8]]))
        p = MvNormal(_t([0.5, 0.0]), _t([[2.0, 0.0], [0.0, 1.0]]))
        expected = td.kl_divergence(
            td.MultivariateNormal(q.mean(), covariance_matrix=q.cov()),
            td.MultivariateNormal(p.mean(), covariance_matrix=p.cov())
        )
        assert torch.isclose(kl_divergence(q, p), expected)


class TestGamma:
    """Tests for the Gamma distribution."""

    def test_moments(self):
        """Test mean, variance and E[log x]."""
        q = Gamma(3.0, 2.0)
        assert torch.isclose(q.mean(), _t(1.5))
        assert torch.isclose(q.var(), _t(0.75))
        expected_log = torch.digamma(_t(3.0)) - math.log(2.0)
        assert torch.isclose(q.expectation("log"), expected_log)

    def test_entropy_matches_torch(self):
        """Test entropy against torch.distributions."""
        expected = td.Gamma(_t(2.5), _t(0.7)).entropy()
        assert torch.isclose(Gamma(2.5, 0.7).entropy(), expected)

    def test_kl_matches_torch(self):
        """Test KL divergence against torch.distributions."""
        expected = td.kl_divergence(td.Gamma(_t(2.0), _t(1.0)), td.Gamma(_t(1.0), _t(3.0)))
        assert torch.isclose(kl_divergence(Gamma(2.0, 1.0), Gamma(1.0, 3.0)), expected)

    def test_product(self):
        """Test that shapes add (minus one) and rates add."""
        c = Gamma(2.0, 1.0).prod(Gamma(3.0, 0.5))
        assert torch.isclose(c.shape, _t(4.0))
        assert torch.isclose(c.rate, _t(1.5))

    def test_unknown_statistic(self):
        """Test that unknown statistics raise IncompatibleFamily."""
        with pytest.raises(IncompatibleFamily):
            Gamma(1.0, 1.0).expectation("log1m")


class TestWishart:
    """Tests for the Wishart distribution."""

    def test_mean_and_df(self):
        """Test E[X] = df * V."""
        V = _t([[1.0, 0.2], [0.2, 0.5]])
        q = Wishart(5.0, V)
        assert torch.isclose(q.df, _t(5.0))
        assert torch.allclose(q.scale(), V)
        assert torch.allclose(q.mean(), 5.0 * V)

    def test_entropy_matches_torch(self):
        """Test entropy against torch.distributions."""
        V = _t([[1.0, 0.2], [0.2, 0.5]])
        expected = td.Wishart(_t(5.0), covariance_matrix=V).entropy()
        assert torch.isclose(Wishart(5.0, V).entropy(), expected)

    def test_expected_logdet(self):
        """Test E[log|X|] against a Monte Carlo estimate."""
        V = _t([[1.0, 0.2], [0.2, 0.5]])
        samples = td.Wishart(_t(6.0), covariance_matrix=V).sample((20000,))
        mc = torch.logdet(samples).mean()
        assert torch.isclose(Wishart(6.0, V).expectation("log"), mc, atol=0.05)

    def test_improper_df(self):
        """Test that df <= d - 1 is improper."""
        q = Wishart.from_natural(-0.5 * torch.eye(3, dtype=torch.float64), _t(-2.5))
        assert not q.is_proper()


class TestDiscreteFamilies:
    """Tests for Bernoulli, Categorical, Beta and Dirichlet."""

    def test_bernoulli(self):
        """Test Bernoulli moments, entropy and product."""
        q = Bernoulli(0.3)
        assert torch.isclose(q.mean(), _t(0.3))
        assert torch.isclose(q.entropy(), td.Bernoulli(probs=_t(0.3)).entropy())
        # product of two 0.5 messages stays at 0.5
        assert torch.isclose(Bernoulli(0.5).prod(Bernoulli(0.5)).p, _t(0.5))
        c = Bernoulli(0.8).prod(Bernoulli(0.8))
        assert torch.isclose(c.p, _t(0.64 / (0.64 + 0.04)))

    def test_categorical_normalises(self):
        """Test that natural parameters are kept normalised."""
        q = Categorical.from_natural(_t([1.0, 2.0, 3.0]))
        assert torch.isclose(q.probs().sum(), _t(1.0))
        assert torch.isclose(q.log_normalizer(), _t(0.0), atol=1e-12)
        expected = torch.softmax(_t([1.0, 2.0, 3.0]), dim=0)
        assert torch.allclose(q.mean(), expected)

    def test_categorical_product(self):
        """Test that the product multiplies probabilities."""
        c = Categorical([0.2, 0.8]).prod(Categorical([0.5, 0.5]))
        assert torch.allclose(c.probs(), _t([0.2, 0.8]))
        c = Categorical([0.2, 0.8]).prod(Categorical([0.8, 0.2]))
        assert torch.allclose(c.probs(), _t([0.5, 0.5]))

    def test_categorical_entropy(self):
        """Test entropy against torch.distributions."""
        p = _t([0.1, 0.6, 0.3])
        expected = td.Categorical(probs=p).entropy()
        assert torch.isclose(Categorical(p).entropy(), expected)

    def test_beta(self):
        """Test Beta expectations and entropy."""
        q = Beta(2.0, 5.0)
        assert torch.isclose(q.mean(), _t(2.0 / 7.0))
        assert torch.isclose(
            q.expectation("log"), torch.digamma(_t(2.0)) - torch.digamma(_t(7.0))
        )
        assert torch.isclose(
            q.expectation("log1m"), torch.digamma(_t(5.0)) - torch.digamma(_t(7.0))
        )
        assert torch.isclose(q.entropy(), td.Beta(_t(2.0), _t(5.0)).entropy())

    def test_dirichlet(self):
        """Test Dirichlet expectations, entropy and KL."""
        alpha = _t([1.0, 2.0, 3.0])
        q = Dirichlet(alpha)
        assert torch.allclose(q.mean(), alpha / 6.0)
        assert torch.allclose(
            q.expectation("log"), torch.digamma(alpha) - torch.digamma(_t(6.0))
        )
        assert torch.isclose(q.entropy(), td.Dirichlet(alpha).entropy())
        p = Dirichlet(_t([2.0, 2.0, 2.0]))
        expected = td.kl_divergence(td.Dirichlet(alpha), td.Dirichlet(p.alpha))
        assert torch.isclose(kl_divergence(q, p), expected)


class TestProducts:
    """Tests for prod_all and point masses."""

    def test_improper_messages_combine(self):
        """Test that individually improper messages may form a proper product."""
        flat = Normal.from_natural(0.0, 0.25)
        sharp = Normal.from_mean_precision(0.0, 2.0)
        c = prod_all([flat, sharp])
        assert c.is_proper()
        assert torch.isclose(c.precision(), _t(1.5))

    def test_improper_product_raises(self):
        """Test that an improper product raises ImproperDistribution."""
        flat = Normal.from_natural(0.0, 0.25)
        with pytest.raises(ImproperDistribution):
            prod_all([flat, Normal.from_mean_precision(0.0, 0.1)])

    def test_incompatible_families(self):
        """Test that different families cannot be combined."""
        with pytest.raises(IncompatibleFamily):
            Normal(0.0, 1.0).prod(Gamma(1.0, 1.0))
        with pytest.raises(IncompatibleFamily):
            prod_all([Categorical([0.5, 0.5]), Categorical([0.2, 0.3, 0.5])])

    def test_empty_product(self):
        """Test that an empty product is rejected."""
        with pytest.raises(ValueError):
            prod_all([])

    def test_point_mass_absorbs(self):
        """Test that a point mass wins any product."""
        pm = PointMass(2.0)
        assert prod_all([Normal(0.0, 1.0), pm]) is pm
        assert pm.prod(Normal(0.0, 1.0)) is pm
        with pytest.raises(IncompatibleFamily):
            prod_all([pm, PointMass(3.0)])

    def test_point_mass_statistics(self):
        """Test statistics of scalar, vector and matrix point masses."""
        assert PointMass(2.0).expectation("xx").item() == 4.0
        assert PointMass(2.0).entropy().item() == 0.0
        v = PointMass([1.0, 2.0])
        assert torch.allclose(v.expectation("xx"), _t([[1.0, 2.0], [2.0, 4.0]]))
        assert torch.allclose(v.cov(), torch.zeros(2, 2, dtype=torch.float64))
        M = PointMass([[2.0, 0.0], [0.0, 3.0]])
        assert torch.isclose(M.expectation("log"), _t(math.log(6.0)))

    def test_cross_entropy_against_point_mass(self):
        """Test that cross-entropy with a point mass is -log density."""
        p = Normal(1.0, 2.0)
        expected = -td.Normal(_t(1.0), _t(2.0).sqrt()).log_prob(_t(0.4))
        assert torch.isclose(p.cross_entropy(PointMass(0.4)), expected)


class TestFamilyRegistry:
    """Tests for family hints."""

    def test_resolve_by_name(self):
        """Test that names resolve to classes."""
        assert resolve_family("normal") is Normal
        assert resolve_family("Gamma") is Gamma
        assert resolve_family(None) is None
        assert resolve_family(Dirichlet) is Dirichlet

    def test_unknown_family(self):
        """Test that unknown names raise IncompatibleFamily."""
        with pytest.raises(IncompatibleFamily):
            resolve_family("student_t")

    def test_registry_is_complete(self):
        """Test that every family is registered under its name."""
        assert len(FAMILIES) == 9
        for name, cls in FAMILIES.items():
            assert cls.family == name
