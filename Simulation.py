"""
Run a scene with one of the integrators.

Usage:
    python Simulation.py three-body --method taylor --order 6 --frames 50
    python Simulation.py double-pendulum --method leapfrog --velocity-iterations 5
    python Simulation.py harmonic-oscillator --compare euler leapfrog taylor
    python Simulation.py double-pendulum --ensemble 11 --frames 400
    python Simulation.py --config simulation.yaml
"""
import argparse
import logging
from dataclasses import dataclass, field, fields, replace
from functools import partial
from pathlib import Path
from typing import Optional

import numpy as np
import yaml

from Integrators import get_integrator, leapfrog_step, taylor_step
from Scenes import SCENES, get_scene, scene_parameters

logger = logging.getLogger(__name__)


@dataclass
class SimulationConfig:
    scene: str = "harmonic-oscillator"
    method: str = "taylor"
    # None means the scene's own default
    order: Optional[int] = None
    dt: Optional[float] = None
    steps_per_frame: Optional[int] = None
    frames: int = 100
    velocity_iterations: int = 1
    log_every: int = 10
    # keyword arguments for the scene factory
    parameters: dict = field(default_factory=dict)
    # methods to run side by side from the same initial state
    compare: list = field(default_factory=list)
    # number of runs with ensemble_parameter spread from its value down to zero
    ensemble: int = 0
    ensemble_parameter: str = "offset"


def load_config(path) -> SimulationConfig:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("%s: expected a mapping at the top level" % path)
    known = {item.name for item in fields(SimulationConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError("%s: unknown configuration key(s): %s" % (path, ", ".join(unknown)))
    return SimulationConfig(**data)


class Simulation:
    """Owns the state of one scene and advances it a frame at a time"""

    def __init__(self, scene, config: SimulationConfig):
        self.scene = scene
        self.config = config
        self.dt = config.dt if config.dt is not None else scene.dt
        self.steps_per_frame = config.steps_per_frame if config.steps_per_frame is not None else scene.steps_per_frame
        self.order = config.order if config.order is not None else scene.order
        if self.dt <= 0:
            raise ValueError("time step must be positive, got %r" % self.dt)
        if self.steps_per_frame < 1:
            raise ValueError("at least one step per frame is needed, got %d" % self.steps_per_frame)

        step = get_integrator(config.method)
        if step is taylor_step:
            if self.order < 2:
                raise ValueError("Taylor order must be at least 2, got %d" % self.order)
            step = partial(step, order=self.order)
        elif step is leapfrog_step:
            step = partial(step, velocity_iterations=config.velocity_iterations)
        self._step = step
        self.state = scene.initial.copy()

    def step(self):
        self.state = self._step(self.scene.system, self.state, self.dt)
        return self.state

    # one frame: steps_per_frame steps of dt
    def tick(self):
        for _ in range(self.steps_per_frame):
            self.step()
        return self.state

    def run(self, frames=None):
        frames = self.config.frames if frames is None else frames
        logger.info("running %s with %s for %d frames (dt=%g, %d steps per frame)",
                    self.scene.name, self.config.method, frames, self.dt, self.steps_per_frame)
        if self.config.method == "taylor":
            logger.info("derivative trees up to order %d hold %d nodes",
                        self.order, self.scene.system.operation_count(self.order))
        history = []
        for frame in range(1, frames + 1):
            history.append(self.tick().copy())
            if self.config.log_every and frame % self.config.log_every == 0:
                logger.info("frame %d, t=%.3f, positions=%s", frame, self.state.time, self.state.positions)
        self.scene.system.clear_caches()
        logger.info("finished %s at t=%.3f", self.scene.name, self.state.time)
        return history


# largest absolute difference between two sets of positions
def deviation(positions, reference):
    return float(np.max(np.abs(np.asarray(positions) - np.asarray(reference)), initial=0.0))


@dataclass
class Comparison:
    """Final states of several methods started from the same initial state"""

    reference: str
    states: dict
    # per method, the deviation of its positions from the reference
    deviations: dict


def compare(scene, config: SimulationConfig, methods=None) -> Comparison:
    """Run every method on scene for config.frames frames.

    Scenes with an exact solution are measured against it, other scenes against
    the first method.
    """
    methods = list(methods if methods is not None else config.compare)
    if not methods:
        raise ValueError("no integration methods to compare")
    states = {}
    for method in methods:
        simulation = Simulation(scene, replace(config, method=method))
        simulation.run()
        states[method] = simulation.state

    if scene.exact is not None:
        reference = "exact"
        positions, _ = scene.exact(states[methods[0]].time)
    else:
        reference = methods[0]
        positions = states[reference].positions
    deviations = {method: deviation(state.positions, positions) for method, state in states.items()}
    for method, value in deviations.items():
        logger.info("%s deviates from %s by %g after t=%.3f", method, reference, value, states[method].time)
    return Comparison(reference, states, deviations)


@dataclass
class Ensemble:
    """Final states of one scene started from a range of values of one parameter"""

    parameter: str
    values: list
    states: list
    # per member, the deviation of its positions from the first member
    deviations: list


def ensemble(config: SimulationConfig, values=None) -> Ensemble:
    """Run config.scene once per parameter value.

    Without explicit values, config.ensemble values are spread evenly from the
    parameter's configured or default value down to zero.
    """
    parameter = config.ensemble_parameter
    known = scene_parameters(config.scene)
    if parameter not in known:
        raise ValueError("scene '%s' has no parameter '%s', choose from: %s"
                         % (config.scene, parameter, ", ".join(known)))
    if values is None:
        if config.ensemble < 2:
            raise ValueError("an ensemble needs at least two members, got %d" % config.ensemble)
        start = config.parameters.get(parameter, known[parameter])
        values = np.linspace(start, 0.0, config.ensemble).tolist()

    states = []
    for value in values:
        scene = get_scene(config.scene, **dict(config.parameters, **{parameter: value}))
        simulation = Simulation(scene, config)
        simulation.run()
        states.append(simulation.state)

    deviations = [deviation(state.positions, states[0].positions) for state in states]
    for value, spread in zip(values, deviations):
        logger.info("%s=%g deviates from %s=%g by %g", parameter, value, parameter, values[0], spread)
    return Ensemble(parameter, list(values), states, deviations)


def build_parser():
    parser = argparse.ArgumentParser(description="Integrate a physics scene using symbolic time-derivatives")
    parser.add_argument("scene", nargs="?", choices=sorted(SCENES), help="scene to simulate")
    parser.add_argument("--config", type=Path, help="YAML file with simulation settings")
    parser.add_argument("--method", help="euler, leapfrog or taylor")
    parser.add_argument("--order", type=int, help="highest derivative order for the Taylor method")
    parser.add_argument("--dt", type=float, help="time step")
    parser.add_argument("--frames", type=int, help="number of frames to run")
    parser.add_argument("--steps-per-frame", type=int, dest="steps_per_frame")
    parser.add_argument("--velocity-iterations", type=int, dest="velocity_iterations")
    parser.add_argument("--compare", nargs="+", metavar="METHOD", help="run several methods side by side")
    parser.add_argument("--ensemble", type=int, metavar="N",
                        help="run N copies with a scene parameter spread down to zero")
    parser.add_argument("--ensemble-parameter", dest="ensemble_parameter",
                        help="scene parameter varied by --ensemble (default: offset)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")

    try:
        config = load_config(args.config) if args.config else SimulationConfig()
        for name in ("scene", "method", "order", "dt", "frames", "steps_per_frame", "velocity_iterations",
                     "compare", "ensemble", "ensemble_parameter"):
            value = getattr(args, name)
            if value is not None:
                setattr(config, name, value)
        if config.compare:
            result = compare(get_scene(config.scene, **config.parameters), config)
        elif config.ensemble:
            result = ensemble(config)
        else:
            simulation = Simulation(get_scene(config.scene, **config.parameters), config)
    except ValueError as e:
        parser.error(str(e))

    if config.compare:
        for method, value in result.deviations.items():
            print("%-10s deviation from %s: %.6g" % (method, result.reference, value))
        return result
    if config.ensemble:
        for value, spread in zip(result.values, result.deviations):
            print("%s=%-10g deviation: %.6g" % (result.parameter, value, spread))
        return result

    simulation.run()
    for q, x, v in zip(simulation.scene.system.coordinates, simulation.state.positions, simulation.state.velocities):
        print("%-4s x=% .6f  v=% .6f" % (q, x, v))
    return simulation.state


if __name__ == "__main__":
    main()
