"""
Tests for the factor graph, factor kinds and the model builder.
"""

import pytest
import torch

from reactive_vmp.distributions import Gamma, Normal, PointMass
from reactive_vmp.exceptions import (
    ArityMismatch,
    IncompatibleFamily,
    UnknownVariable
)
from reactive_vmp.graph import (
    FACTOR_KINDS,
    FACTOR_TO_VARIABLE,
    VARIABLE_TO_FACTOR,
    Factor,
    FactorGraph,
    ModelSpecification,
    NormalFactor,
    NormalMixtureFactor,
    register_factor
)
from reactive_vmp.inference import MarginalSet


@pytest.fixture
def small_graph():
    """m -- prior, y -- normal(y, m, tau)."""
    graph = FactorGraph()
    m = graph.add_variable("latent", "normal", name="m")
    y = graph.add_variable("observed", "normal", name="y", value=1.3)
    tau = graph.add_variable("observed", name="tau", value=2.0)
    graph.add_factor("prior", [m], {"distribution": Normal(0.0, 10.0)})
    graph.add_factor("normal", [y, m, tau])
    return graph


class TestFactorGraph:
    """Tests for graph construction and queries."""

    def test_ids_are_sequential(self, small_graph):
        """Test that ids follow insertion order."""
        assert [v.id for v in small_graph.variables] == [0, 1, 2]
        assert [f.id for f in small_graph.factors] == [0, 1]
        assert small_graph.num_variables == 3
        assert small_graph.num_factors == 2

    def test_neighbors_and_factor_variables(self, small_graph):
        """Test adjacency queries."""
        assert small_graph.neighbors(0) == (0, 1)
        assert small_graph.neighbors(2) == (1,)
        assert small_graph.factor_variables(1) == (1, 0, 2)

    def test_edges_in_both_directions(self, small_graph):
        """Test that add_factor registers both edge directions."""
        assert (1, 0, FACTOR_TO_VARIABLE) in small_graph.edges
        assert (1, 0, VARIABLE_TO_FACTOR) in small_graph.edges
        assert len(small_graph.edges) == 2 * (1 + 3)

    def test_add_edge_is_idempotent(self, small_graph):
        """Test that re-adding an edge does not duplicate it."""
        n_edges = len(small_graph.edges)
        small_graph.add_edge(1, 0, FACTOR_TO_VARIABLE)
        assert len(small_graph.edges) == n_edges
        with pytest.raises(ValueError):
            small_graph.add_edge(0, 1, FACTOR_TO_VARIABLE)

    def test_roles(self, small_graph):
        """Test latent and observed id lists."""
        assert small_graph.latent_ids() == [0]
        assert small_graph.observed_ids() == [1, 2]
        assert small_graph.variables[0].family is Normal

    def test_arity_mismatch(self, small_graph):
        """Test that wrong argument counts are rejected."""
        with pytest.raises(ArityMismatch):
            small_graph.add_factor("normal", [1, 0])

    def test_unknown_variable(self, small_graph):
        """Test that unknown ids and names are rejected."""
        with pytest.raises(UnknownVariable):
            small_graph.add_factor("normal", [1, 0, 7])
        with pytest.raises(UnknownVariable):
            small_graph.neighbors(-1)
        with pytest.raises(UnknownVariable):
            small_graph.variable_id("nope")

    def test_invalid_construction(self):
        """Test argument validation of add_variable and add_factor."""
        graph = FactorGraph()
        with pytest.raises(ValueError):
            graph.add_variable("hidden")
        with pytest.raises(ValueError):
            graph.add_variable("observed")
        a = graph.add_variable("latent", name="a")
        with pytest.raises(ValueError):
            graph.add_variable("latent", name="a")
        with pytest.raises(ValueError):
            graph.add_factor("no_such_kind", [a])
        with pytest.raises(ValueError):
            graph.add_factor("normal", [a, a, a])
        with pytest.raises(IncompatibleFamily):
            graph.add_variable("latent", "student_t")

    def test_frozen_graph_is_immutable(self, small_graph):
        """Test that a frozen graph rejects mutation."""
        small_graph.freeze()
        assert small_graph.frozen
        with pytest.raises(RuntimeError):
            small_graph.add_variable("latent")
        with pytest.raises(RuntimeError):
            small_graph.add_factor("prior", [0], {"distribution": Normal()})

    def test_ids_for_arrays(self):
        """Test that array names resolve to all elements."""
        graph = ModelSpecification().latent("x", size=3).latent("xs").build()
        assert graph.ids_for("x") == [0, 1, 2]
        assert graph.ids_for("x[1]") == [1]
        assert graph.ids_for("xs") == [3]
        assert graph.ids_for(2) == [2]


class TestModelSpecification:
    """Tests for the declarative builder."""

    def test_build(self, simple_spec):
        """Test array expansion and relation wiring."""
        graph = simple_spec.build()
        names = [v.name for v in graph.variables]
        assert names == ["m", "tau", "y[0]", "y[1]", "y[2]"]
        assert graph.latent_ids() == [0]
        assert graph.num_factors == 4
        assert graph.variables[3].value.item() == pytest.approx(0.8)

    def test_vector_observations(self):
        """Test that the first axis indexes array elements."""
        data = torch.arange(6, dtype=torch.float64).reshape(3, 2)
        graph = ModelSpecification().observed("y", data, array=True).build()
        assert graph.num_variables == 3
        assert torch.equal(graph.variables[2].value, data[2])

    def test_unknown_relation_argument(self):
        """Test that relations must name declared variables."""
        spec = ModelSpecification().latent("m").relate("prior", "q", distribution=Normal())
        with pytest.raises(UnknownVariable):
            spec.build()

    def test_relation_arity(self):
        """Test that relation arity is checked at build."""
        spec = ModelSpecification().latent("m").latent("s").relate("normal", "m", "s")
        with pytest.raises(ArityMismatch):
            spec.build()

    def test_invalid_declarations(self):
        """Test argument validation."""
        with pytest.raises(ValueError):
            ModelSpecification().latent("x", size=0)
        with pytest.raises(ValueError):
            ModelSpecification().observed("y", 1.0, array=True)


class TestFactors:
    """Tests for factor message rules."""

    def test_normal_messages(self):
        """Test VMP messages of the Gaussian link with a latent precision."""
        # variables: y (observed 2.0), m ~ N(1, 0.5), tau ~ Gamma(3, 2)
        marginals = MarginalSet([PointMass(2.0), Normal(1.0, 0.5), Gamma(3.0, 2.0)])
        factor = NormalFactor([0, 1, 2])

        to_m = factor.message(1, marginals)
        assert torch.isclose(to_m.mean(), torch.tensor(2.0, dtype=torch.float64))
        assert torch.isclose(to_m.precision(), torch.tensor(1.5, dtype=torch.float64))

        to_tau = factor.message(2, marginals)
        # E[(y - m)^2] = 1 + 0.5
        assert torch.isclose(to_tau.shape, torch.tensor(1.5, dtype=torch.float64))
        assert torch.isclose(to_tau.rate, torch.tensor(0.75, dtype=torch.float64))

    def test_normal_average_energy(self):
        """Test U = -E[log N(y | m, 1/tau)] for point masses."""
        marginals = MarginalSet([PointMass(0.5), PointMass(0.0), PointMass(4.0)])
        energy = NormalFactor([0, 1, 2]).average_energy(marginals)
        expected = -torch.distributions.Normal(0.0, 0.5).log_prob(torch.tensor(0.5))
        assert energy.item() == pytest.approx(expected.item())

    def test_mixture_arity(self):
        """Test the arity of the mixture selector."""
        assert NormalMixtureFactor.arity(n_components=3) == 8
        with pytest.raises(ValueError):
            NormalMixtureFactor.arity(n_components=1)
        factor = NormalMixtureFactor(list(range(6)), n_components=2)
        assert factor.interface == ("out", "switch", "m1", "m2", "w1", "w2")

    def test_prior_requires_distribution(self):
        """Test that the prior factor needs a distribution."""
        graph = FactorGraph()
        x = graph.add_variable("latent")
        with pytest.raises(ValueError):
            graph.add_factor("prior", [x], {"distribution": 3.0})

    def test_gaussian_terms_unsupported(self):
        """Test that non-Gaussian factors refuse joint contributions."""
        marginals = MarginalSet([PointMass(1.0), Normal(), Gamma()])
        with pytest.raises(IncompatibleFamily):
            NormalFactor([0, 1, 2]).gaussian_terms([2], marginals)

    def test_register_factor(self):
        """Test registration of a custom factor kind."""

        @register_factor
        class ShiftFactor(Factor):
            kind = "test_shift"
            interface = ("out",)

            def message(self, position, marginals):
                return Normal(self.static.get("loc", 0.0), 1.0)

            def average_energy(self, marginals):
                return torch.zeros((), dtype=torch.float64)

        try:
            graph = FactorGraph()
            x = graph.add_variable("latent")
            fid = graph.add_factor("test_shift", [x], {"loc": 2.0})
            assert isinstance(graph.factors[fid], ShiftFactor)
        finally:
            FACTOR_KINDS.pop("test_shift")

        with pytest.raises(TypeError):
            register_factor(int)
