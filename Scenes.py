"""The demonstration systems: force laws as expression trees plus initial conditions."""
import inspect
import math
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from Expressions import CosineNode, SineNode, Variable
from Systems import MechanicalSystem, State


@dataclass
class Scene:
    name: str
    system: MechanicalSystem
    initial: State
    dt: float
    steps_per_frame: int = 4
    order: int = 4
    # exact solution (positions, velocities) at a given time, where one is known
    exact: Optional[Callable] = None


def harmonic_oscillator(amplitude=200.0, angular_frequency=3.0, dt=0.02):
    y = Variable("y")
    system = MechanicalSystem(["y"], {"y": -angular_frequency ** 2 * y})

    def exact(time):
        phase = angular_frequency * time
        return (np.array([amplitude * math.cos(phase)]),
                np.array([-amplitude * angular_frequency * math.sin(phase)]))

    return Scene("harmonic-oscillator", system, State(0.0, [amplitude], [0.0]), dt,
                 steps_per_frame=1, order=3, exact=exact)


def three_body(radius=200.0, speed=130.0, dt=0.005):
    """Three equal masses on an equilateral triangle, each with speed at right angles to its radius"""
    k = speed * speed / radius * 40000 * (math.sqrt(3) + 4)
    x = [Variable("x%d" % i) for i in (1, 2, 3)]
    y = [Variable("y%d" % i) for i in (1, 2, 3)]

    # pairs (1, 2), (2, 3), (3, 1)
    dx = [x[i] - x[(i + 1) % 3] for i in range(3)]
    dy = [y[i] - y[(i + 1) % 3] for i in range(3)]
    force = [k * (dx[i] * dx[i] + dy[i] * dy[i]) ** -1.5 for i in range(3)]

    accelerations = {}
    for i in range(3):
        # pair (i-1, i) enters with a plus sign, pair (i, i+1) with a minus sign
        previous = (i - 1) % 3
        accelerations["x%d" % (i + 1)] = force[previous] * dx[previous] - force[i] * dx[i]
        accelerations["y%d" % (i + 1)] = force[previous] * dy[previous] - force[i] * dy[i]

    coordinates = ["x1", "y1", "x2", "y2", "x3", "y3"]
    system = MechanicalSystem(coordinates, accelerations, memoize=True)

    half_root_three = math.sqrt(0.75)
    positions = [0.0, radius,
                 radius * half_root_three, -radius / 2,
                 -radius * half_root_three, -radius / 2]
    velocities = [-speed, 0.0,
                  speed / 2, speed * half_root_three,
                  speed / 2, -speed * half_root_three]
    return Scene("three-body", system, State(0.0, positions, velocities), dt, order=6)


def double_pendulum(stiffness=4.0, offset=0.01, dt=0.005):
    """Two equal point masses on equal rigid rods; stiffness is g / l"""
    a1, a2 = Variable("a1"), Variable("a2")
    da1, da2 = a1.derivative(), a2.derivative()

    sin12 = SineNode(a1 - a2)
    cos12 = CosineNode(a1 - a2)
    below = 1 - cos12 * cos12 * 0.5
    above1 = (stiffness * (SineNode(a2, 0.5) * cos12 - SineNode(a1))
              - sin12 * 0.5 * (da2 * da2 + da1 * da1 * cos12))
    above2 = (stiffness * (SineNode(a1) * cos12 - SineNode(a2))
              + sin12 * (da2 * da2 * cos12 * 0.5 + da1 * da1))

    system = MechanicalSystem(["a1", "a2"], {"a1": above1 / below, "a2": above2 / below})
    initial = State(0.0, [math.pi / 2 - offset, math.pi / 2], [0.0, 0.0])
    return Scene("double-pendulum", system, initial, dt, order=4)


def double_spring(gravity=800.0, stiffness=30.0, rest_length=140.0, dt=0.005):
    """Two masses hanging from the origin in a chain of two springs"""
    x1, y1, x2, y2 = (Variable(name) for name in ("x1", "y1", "x2", "y2"))
    x12, y12 = x2 - x1, y2 - y1

    # spring force per unit of extension vector, positive when compressed
    force1 = (rest_length / (x1 * x1 + y1 * y1) ** 0.5 - 1) * stiffness
    force2 = (rest_length / (x12 * x12 + y12 * y12) ** 0.5 - 1) * stiffness

    accelerations = {"x1": force1 * x1 - force2 * x12,
                     "y1": force1 * y1 - force2 * y12 + gravity,
                     "x2": force2 * x12,
                     "y2": force2 * y12 + gravity}
    system = MechanicalSystem(["x1", "y1", "x2", "y2"], accelerations)
    initial = State(0.0, [rest_length, 0.0, 2 * rest_length, 0.0], [0.0, 0.0, 0.0, 100.0])
    return Scene("double-spring", system, initial, dt, order=4)


SCENES = {"harmonic-oscillator": harmonic_oscillator,
          "three-body": three_body,
          "double-pendulum": double_pendulum,
          "double-spring": double_spring}


def _factory(name):
    try:
        return SCENES[name]
    except KeyError as e:
        raise ValueError("unknown scene '%s', choose from: %s" % (name, ", ".join(sorted(SCENES)))) from e


# the keyword parameters of a scene with their default values
def scene_parameters(name):
    return {parameter.name: parameter.default
            for parameter in inspect.signature(_factory(name)).parameters.values()}


def get_scene(name, **parameters):
    known = scene_parameters(name)
    unknown = sorted(set(parameters) - set(known))
    if unknown:
        raise ValueError("scene '%s' has no parameter(s) %s, choose from: %s"
                         % (name, ", ".join(unknown), ", ".join(known)))
    return _factory(name)(**parameters)
