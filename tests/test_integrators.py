"""
Tests for the mechanical systems and the fixed-step integrators.
"""

import math

import numpy as np
import pytest

from Expressions import Variable
from Integrators import euler_step, get_integrator, leapfrog_step, taylor_step
from Systems import MechanicalSystem, State


@pytest.fixture
def oscillator():
    """y'' = -9 y, starting at y = 1 at rest."""
    system = MechanicalSystem(["y"], {"y": -9 * Variable("y")})
    return system, State(0.0, [1.0], [0.0])


def integrate(step, system, state, dt, steps, **options):
    for _ in range(steps):
        state = step(system, state, dt, **options)
    return state


# =============================================================================
# State and MechanicalSystem
# =============================================================================

class TestState:

    def test_shapes_must_match(self):
        with pytest.raises(ValueError):
            State(0.0, [1.0, 2.0], [0.0])

    def test_copy_is_independent(self):
        state = State(0.0, [1.0], [2.0])
        copy = state.copy()
        copy.positions[0] = 5.0
        assert state.positions[0] == 1.0


class TestMechanicalSystem:

    def test_missing_acceleration(self):
        with pytest.raises(ValueError):
            MechanicalSystem(["x", "y"], {"x": Variable("y")})

    def test_bindings(self, oscillator):
        system, _ = oscillator
        assert system.bindings(State(0.0, [2.0], [1.0])) == {"y": 2.0, "dy": 1.0}

    def test_derivatives(self, oscillator):
        system, _ = oscillator
        values = system.derivatives(State(0.0, [2.0], [1.0]), 4)
        assert values.shape == (3, 1)
        np.testing.assert_allclose(values[:, 0], [-18, -9, 162])

    def test_chains_are_built_once(self, oscillator):
        system, _ = oscillator
        assert system.chains(4) is system.chains(4)
        assert system.operation_count(2) == 3

    def test_order_below_acceleration(self, oscillator):
        system, _ = oscillator
        with pytest.raises(ValueError):
            system.chains(1)

    def test_memoized_system_matches(self):
        accelerations = {"y": -9 * Variable("y")}
        state = State(0.0, [2.0], [1.0])
        plain = MechanicalSystem(["y"], accelerations).derivatives(state, 4)
        memoized = MechanicalSystem(["y"], accelerations, memoize=True)
        np.testing.assert_array_equal(memoized.derivatives(state, 4), plain)
        memoized.clear_caches()
        assert memoized.chains(4)["y"][0]._evaluation_cache == {}


# =============================================================================
# Integrators
# =============================================================================

class TestIntegrators:

    def test_euler_single_step(self, oscillator):
        system, state = oscillator
        new = euler_step(system, state, 0.1)
        assert new.time == pytest.approx(0.1)
        np.testing.assert_allclose(new.positions, [1.0])
        np.testing.assert_allclose(new.velocities, [-0.9])

    def test_input_state_is_not_modified(self, oscillator):
        system, state = oscillator
        taylor_step(system, state, 0.1, order=4)
        assert state.time == 0.0
        assert state.positions[0] == 1.0

    def test_taylor_order_two_single_step(self, oscillator):
        system, state = oscillator
        new = taylor_step(system, state, 0.1, order=2)
        np.testing.assert_allclose(new.positions, [1.0 - 0.5 * 0.01 * 9])
        np.testing.assert_allclose(new.velocities, [-0.9])

    def test_accuracy_improves_with_order(self, oscillator):
        system, state = oscillator
        dt, steps = 0.01, 100
        exact = math.cos(3.0)

        def error(step, **options):
            final = integrate(step, system, state, dt, steps, **options)
            return abs(final.positions[0] - exact)

        euler = error(euler_step)
        leapfrog = error(leapfrog_step)
        taylor4 = error(taylor_step, order=4)
        taylor6 = error(taylor_step, order=6)
        assert euler < 0.1
        assert leapfrog < 1e-3
        assert taylor4 < 1e-4
        assert taylor6 < 1e-8
        assert leapfrog < euler
        assert taylor6 < taylor4 < euler

    def test_leapfrog_iterations_without_velocity_dependence(self, oscillator):
        system, state = oscillator
        once = leapfrog_step(system, state, 0.05)
        thrice = leapfrog_step(system, state, 0.05, velocity_iterations=3)
        np.testing.assert_allclose(thrice.positions, once.positions)
        np.testing.assert_allclose(thrice.velocities, once.velocities)

    def test_leapfrog_iterations_with_drag(self):
        # y'' = -dy: the velocity update is implicit, iterating converges to the trapezoidal rule
        system = MechanicalSystem(["y"], {"y": -Variable("dy")})
        state = State(0.0, [0.0], [1.0])
        dt = 0.1
        refined = leapfrog_step(system, state, dt, velocity_iterations=50)
        # fixed point of v1 = 1 + dt/2 (-1 - v1)
        expected = (1 - dt / 2) / (1 + dt / 2)
        np.testing.assert_allclose(refined.velocities, [expected])

    def test_invalid_arguments(self, oscillator):
        system, state = oscillator
        with pytest.raises(ValueError):
            euler_step(system, state, 0)
        with pytest.raises(ValueError):
            taylor_step(system, state, -0.1)
        with pytest.raises(ValueError):
            leapfrog_step(system, state, 0.1, velocity_iterations=0)

    def test_registry(self):
        assert get_integrator("taylor") is taylor_step
        with pytest.raises(ValueError):
            get_integrator("rk4")
