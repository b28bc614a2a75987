"""Shared fixtures: deterministic randomness and hand-built creatures."""

import numpy as np
import pytest

from springform_engine import config as cfg
from springform_engine.creature import CREATURE_DTYPE, create_random, new_creature, reset


# ---------------------------------------------------------------------------
# Randomness
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def seeded():
    np.random.seed(1234)
    yield


# ---------------------------------------------------------------------------
# Creatures
# ---------------------------------------------------------------------------

def _build(points, pairs, friction=0.0, strength=10.0):
    creature = new_creature()
    n_nodes = len(points)
    creature['n_nodes'] = n_nodes
    creature['n_muscles'] = len(pairs)
    creature['node_initial'][:n_nodes] = points
    creature['node_friction'][:n_nodes] = friction
    for m, (a, b) in enumerate(pairs):
        rest_length = np.linalg.norm(np.subtract(points[b], points[a]))
        creature['muscle_first'][m] = a
        creature['muscle_second'][m] = b
        creature['muscle_extended'][m] = rest_length
        creature['muscle_contracted'][m] = 0.75 * rest_length
        creature['muscle_strength'][m] = strength
    creature['behavior'] = cfg.MUSCLE_NONE
    creature['fitness'] = cfg.FITNESS_INVALID
    reset(creature)
    return creature


@pytest.fixture
def build_creature():
    """Factory: build_creature(points, pairs, friction=0.0, strength=10.0)."""
    return _build


@pytest.fixture
def ring_creature():
    """Factory: a flat ring of n nodes with one muscle per edge."""
    def make(n_nodes, height=0.5):
        angles = np.linspace(0.0, 2.0 * np.pi, n_nodes, endpoint=False)
        points = [(np.cos(a), height, np.sin(a)) for a in angles]
        pairs = [(i, (i + 1) % n_nodes) for i in range(n_nodes)]
        return _build(points, pairs, friction=0.5)
    return make


@pytest.fixture
def square_creature():
    """Four nodes one unit up, a unit square of equal-strength muscles, no friction."""
    points = [(0.0, 1.0, 0.0), (1.0, 1.0, 0.0), (1.0, 1.0, 1.0), (0.0, 1.0, 1.0)]
    pairs = [(0, 1), (1, 2), (2, 3), (3, 0)]
    return _build(points, pairs, friction=0.0, strength=10.0)


@pytest.fixture
def random_creature():
    creature = new_creature()
    create_random(creature)
    return creature


@pytest.fixture
def clone():
    """Independent copy of a creature record."""
    def copy(creature):
        records = np.zeros(1, dtype=CREATURE_DTYPE)
        records[0] = creature
        return records[0]
    return copy
