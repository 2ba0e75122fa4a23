"""
Tests for derivative chains and the level-by-level evaluation of coupled chains.
"""

import pytest

from Chains import derivative_chain, derivative_key, evaluate_chain, evaluate_system
from Expressions import MultiplicationNode, Variable, VariableNotFoundError


@pytest.fixture
def oscillator():
    """Acceleration of y'' = -9 y."""
    return MultiplicationNode(-9, Variable("y"))


class TestDerivativeChain:

    def test_derivative_key(self):
        assert derivative_key("x1", 0) == "x1"
        assert derivative_key("x1", 3) == "dddx1"

    def test_length_and_links(self):
        x = Variable("x")
        chain = derivative_chain(x * x, 2)
        assert len(chain) == 3
        assert chain[1] == chain[0].derivative()
        assert chain[2] == chain[1].derivative()

    def test_order_zero(self):
        x = Variable("x")
        assert derivative_chain(x, 0) == [x]

    def test_negative_order(self):
        with pytest.raises(ValueError):
            derivative_chain(Variable("x"), -1)


class TestEvaluateChain:

    def test_widening_with_derivative_names(self, oscillator):
        chain = derivative_chain(oscillator, 2)
        bindings = {"y": 2, "dy": 1}
        assert evaluate_chain(chain, bindings, "y") == pytest.approx([-18, -9, 162])
        assert bindings == {"y": 2, "dy": 1}

    def test_acceleration_chain_at_order_one(self, oscillator):
        chain = derivative_chain(oscillator, 1)
        assert evaluate_chain(chain, {"y": 2, "dy": 1}, "y") == pytest.approx([-18, -9])

    def test_base_order(self):
        # z''' = 2 dz: the third level needs dddz, the value of the first
        z = Variable("z")
        chain = derivative_chain(2 * z.derivative(), 2)
        values = evaluate_chain(chain, {"z": 2, "dz": 3, "ddz": 5}, "z", base_order=3)
        assert values == pytest.approx([6, 10, 12])

    def test_missing_variable(self, oscillator):
        chain = derivative_chain(oscillator + Variable("w"), 1)
        with pytest.raises(VariableNotFoundError) as info:
            evaluate_chain(chain, {"y": 2, "dy": 1}, "y")
        assert info.value.name == "w"

    def test_memoized(self, oscillator):
        chain = derivative_chain(oscillator, 2)
        plain = evaluate_chain(chain, {"y": 2, "dy": 1}, "y")
        memoized = evaluate_chain(chain, {"y": 2, "dy": 1}, "y", memoize=True)
        assert memoized == plain
        assert chain[0]._evaluation_cache


class TestEvaluateSystem:

    def test_coupled_coordinates(self):
        # x'' = y, y'' = -x
        x, y = Variable("x"), Variable("y")
        chains = {"x": derivative_chain(y, 2), "y": derivative_chain(-x, 2)}
        bindings = {"x": 1, "y": 2, "dx": 3, "dy": 4}
        values = evaluate_system(chains, bindings)
        assert values["x"] == pytest.approx([2, 4, -1])
        assert values["y"] == pytest.approx([-1, -3, -2])
        assert "ddx" not in bindings

    def test_chains_of_different_lengths(self):
        x, y = Variable("x"), Variable("y")
        chains = {"x": derivative_chain(y, 1), "y": derivative_chain(-x, 0)}
        values = evaluate_system(chains, {"x": 1, "y": 2, "dx": 3, "dy": 4})
        assert values == {"x": pytest.approx([2, 4]), "y": pytest.approx([-1])}

    def test_empty(self):
        assert evaluate_system({}, {"x": 1}) == {}
