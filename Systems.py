import logging
from dataclasses import dataclass

import numpy as np

from Chains import derivative_chain, derivative_key, evaluate_system

logger = logging.getLogger(__name__)


@dataclass
class State:
    """Positions and velocities of every coordinate at a point in time"""

    time: float
    positions: np.ndarray
    velocities: np.ndarray

    def __post_init__(self):
        self.positions = np.array(self.positions, dtype=float)
        self.velocities = np.array(self.velocities, dtype=float)
        if self.positions.shape != self.velocities.shape:
            raise ValueError("positions and velocities differ in shape: %s vs %s"
                             % (self.positions.shape, self.velocities.shape))

    def copy(self):
        return State(self.time, self.positions.copy(), self.velocities.copy())


class MechanicalSystem:
    """Coordinates whose accelerations are given as Expressions.

    The acceleration of coordinate q may refer to any coordinate by its name and
    to velocities by "d" + name. Higher time-derivatives of the accelerations are
    built once per order and reused for every evaluation.
    """

    def __init__(self, coordinates, accelerations, memoize: bool = False):
        self.coordinates = list(coordinates)
        missing = [q for q in self.coordinates if q not in accelerations]
        if missing:
            raise ValueError("no acceleration given for coordinate(s): %s" % ", ".join(missing))
        self.accelerations = {q: accelerations[q] for q in self.coordinates}
        self.memoize = memoize
        self._chains = {}

    def __len__(self):
        return len(self.coordinates)

    # the bindings of the positions and velocities of state
    def bindings(self, state):
        bindings = {}
        for q, x, v in zip(self.coordinates, state.positions, state.velocities):
            bindings[q] = float(x)
            bindings[derivative_key(q, 1)] = float(v)
        return bindings

    # the chains of acceleration trees up to the order-th time-derivative of position
    def chains(self, order: int):
        if order < 2:
            raise ValueError("the acceleration is the lowest order available, got order %d" % order)
        if order not in self._chains:
            self._chains[order] = {q: derivative_chain(a, order - 2) for q, a in self.accelerations.items()}
            logger.debug("built derivative chains up to order %d with %d nodes",
                         order, self._count(self._chains[order]))
        return self._chains[order]

    # rows are the time-derivatives of order 2, 3, ..., order of each coordinate
    def derivatives(self, state, order: int):
        values = evaluate_system(self.chains(order), self.bindings(state), memoize=self.memoize)
        return np.array([values[q] for q in self.coordinates], dtype=float).T

    def accelerations_at(self, state):
        return self.derivatives(state, 2)[0]

    def operation_count(self, order: int):
        return self._count(self.chains(order))

    @staticmethod
    def _count(chains):
        return sum(tree.operation_count for chain in chains.values() for tree in chain)

    def clear_caches(self):
        for chains in self._chains.values():
            for chain in chains.values():
                for tree in chain:
                    tree.clear_cache()
