"""Fixed-step integrators for a MechanicalSystem.

Every stepper takes the current State and returns a new one, ``dt`` later.
"""
from math import factorial

from Systems import State


def _check_step(dt):
    if dt <= 0:
        raise ValueError("time step must be positive, got %r" % dt)


def euler_step(system, state, dt):
    _check_step(dt)
    acceleration = system.accelerations_at(state)
    return State(state.time + dt,
                 state.positions + dt * state.velocities,
                 state.velocities + dt * acceleration)


def leapfrog_step(system, state, dt, velocity_iterations=1):
    """Velocity Verlet.

    The new velocity depends on the acceleration at the new state, which itself
    may depend on the new velocity; velocity_iterations > 1 repeats the velocity
    update as a fixed-point iteration.
    """
    _check_step(dt)
    if velocity_iterations < 1:
        raise ValueError("at least one velocity iteration is needed, got %d" % velocity_iterations)
    acceleration = system.accelerations_at(state)
    positions = state.positions + dt * (state.velocities + 0.5 * dt * acceleration)
    new = State(state.time + dt, positions, state.velocities)
    for _ in range(velocity_iterations):
        new_acceleration = system.accelerations_at(new)
        new = State(new.time, positions, state.velocities + 0.5 * dt * (acceleration + new_acceleration))
    return new


def taylor_step(system, state, dt, order=4):
    """Truncated Taylor series using time-derivatives of position up to order.

    x += sum(dt**k / k! * x^(k)) for k = 1 .. order
    v += sum(dt**k / k! * x^(k+1)) for k = 1 .. order - 1
    """
    _check_step(dt)
    # row i holds the (i + 2)-th derivative
    derivatives = system.derivatives(state, order)
    positions = state.positions + dt * state.velocities
    velocities = state.velocities.copy()
    for i, row in enumerate(derivatives):
        k = i + 2
        positions = positions + dt ** k / factorial(k) * row
        velocities = velocities + dt ** (k - 1) / factorial(k - 1) * row
    return State(state.time + dt, positions, velocities)


INTEGRATORS = {"euler": euler_step,
               "leapfrog": leapfrog_step,
               "taylor": taylor_step}


def get_integrator(name):
    try:
        return INTEGRATORS[name]
    except KeyError as e:
        raise ValueError("unknown integration method '%s', choose from: %s"
                         % (name, ", ".join(sorted(INTEGRATORS)))) from e
