"""
Unit tests for the compiled physics kernels (driven through creature.update).

Tests cover:
- A dropped square settling on the ground plane
- Ground friction and restitution
- Energy accounting of contracted muscles
- Decomposition of long updates into fixed steps
- Integrator selection and kernel caching
- Per-thread kernel work buffers
"""

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from springform_engine import config as cfg
from springform_engine import creature as cr
from springform_engine.engine import get_kernels


# ---------------------------------------------------------------------------
# Dropped square
# ---------------------------------------------------------------------------

class TestDroppedSquare:
    def test_falls_under_gravity(self, square_creature):
        cr.update(square_creature, 0.5)
        heights = square_creature['node_position'][:4, 1]
        # Free fall for half a second: y = 1 - t^2 / 2
        np.testing.assert_allclose(heights, 1.0 - 0.125, atol=1e-9)
        np.testing.assert_allclose(square_creature['node_velocity'][:4, 1], -0.5, atol=1e-9)

    def test_settles_on_the_ground(self, square_creature):
        initial = square_creature['node_initial'][:4].copy()
        assert cr.settle(square_creature)
        cr.update(square_creature, 20.0)

        position = square_creature['node_position'][:4]
        velocity = square_creature['node_velocity'][:4]
        assert np.all(position[:, 1] < cfg.EPSILON)
        np.testing.assert_array_equal(velocity[:, [0, 2]], 0.0)
        assert np.all(np.abs(velocity[:, 1]) < 0.01)
        np.testing.assert_allclose(position[:, [0, 2]], initial[:, [0, 2]])
        assert cr.rest(square_creature, cfg.TIME_STEP)

    def test_never_sinks_below_ground(self, square_creature):
        for _ in range(200):
            cr.update(square_creature, 0.05)
            assert np.all(square_creature['node_position'][:4, 1] >= 0.0)

    def test_zero_duration_update_is_a_no_op(self, square_creature):
        cr.update(square_creature, 3.0)
        before = square_creature.tobytes()
        cr.update(square_creature, 0.0)
        assert square_creature.tobytes() == before


# ---------------------------------------------------------------------------
# Ground contact
# ---------------------------------------------------------------------------

class TestGroundContact:
    def _sliding_pair(self, build_creature, friction):
        creature = build_creature([(0.0, 0.0, 0.0), (1.0, 0.0, 0.0)], [(0, 1), (1, 0)], friction=friction)
        creature['node_velocity'][:2, 0] = 1.0
        return creature

    def test_friction_slows_sliding_nodes(self, build_creature):
        creature = self._sliding_pair(build_creature, friction=1.0)
        cr.update(creature, cfg.TIME_STEP)
        assert np.all(creature['node_velocity'][:2, 0] < 1.0)
        assert np.all(creature['node_velocity'][:2, 0] > 0.0)

    def test_frictionless_nodes_keep_sliding(self, build_creature):
        creature = self._sliding_pair(build_creature, friction=0.0)
        cr.update(creature, cfg.TIME_STEP)
        np.testing.assert_allclose(creature['node_velocity'][:2, 0], 1.0)

    def test_landing_reverses_and_damps_vertical_velocity(self, build_creature):
        creature = build_creature([(0.0, 0.001, 0.0), (1.0, 0.001, 0.0)], [(0, 1), (1, 0)])
        creature['node_velocity'][:2, 1] = -1.0
        cr.update(creature, cfg.TIME_STEP)
        assert np.all(creature['node_position'][:2, 1] == 0.0)
        np.testing.assert_allclose(creature['node_velocity'][:2, 1],
                                   (-1.0 + cfg.GRAVITY * cfg.TIME_STEP) * -cfg.RESTITUTION)


# ---------------------------------------------------------------------------
# Energy
# ---------------------------------------------------------------------------

class TestEnergy:
    def test_relaxed_muscles_spend_nothing(self, random_creature):
        cr.update(random_creature, 2.0)
        assert random_creature['energy'] == 0.0

    def test_contracted_muscles_spend_energy(self, random_creature):
        random_creature['muscle_is_contracted'][:random_creature['n_muscles']] = True
        cr.update(random_creature, 0.5)
        assert random_creature['energy'] > 0.0

    def test_energy_never_decreases(self, random_creature):
        n_muscles = random_creature['n_muscles']
        random_creature['muscle_is_contracted'][:n_muscles:2] = True
        previous = 0.0
        for _ in range(50):
            cr.update(random_creature, 0.02)
            assert random_creature['energy'] >= previous
            previous = random_creature['energy']


# ---------------------------------------------------------------------------
# Step decomposition
# ---------------------------------------------------------------------------

class TestDecomposition:
    def test_one_long_update_equals_two_halves(self, random_creature, clone):
        random_creature['muscle_is_contracted'][:random_creature['n_muscles']:3] = True
        whole, halves = random_creature, clone(random_creature)

        cr.update(whole, 8 * cfg.TIME_STEP)
        cr.update(halves, 4 * cfg.TIME_STEP)
        cr.update(halves, 4 * cfg.TIME_STEP)

        for field in ('node_position', 'node_velocity'):
            np.testing.assert_array_equal(whole[field], halves[field])
        assert whole['energy'] == pytest.approx(halves['energy'], rel=1e-12)

    def test_remainder_is_stepped(self, square_creature, clone):
        stepped = clone(square_creature)
        cr.update(square_creature, 2.5 * cfg.TIME_STEP)
        assert not np.array_equal(square_creature['node_position'], stepped['node_position'])
        cr.update(stepped, 2 * cfg.TIME_STEP)
        # The extra half step keeps falling
        assert np.all(square_creature['node_position'][:4, 1] < stepped['node_position'][:4, 1])


# ---------------------------------------------------------------------------
# Integrator selection
# ---------------------------------------------------------------------------

class TestKernelSelection:
    def test_kernels_are_cached_per_integrator(self):
        assert get_kernels("midpoint") is get_kernels("midpoint")
        assert get_kernels("euler") is not get_kernels("midpoint")

    def test_configured_integrator_is_used(self, square_creature, clone, monkeypatch):
        euler = clone(square_creature)
        cr.update(square_creature, 0.1)
        monkeypatch.setattr(cfg, "INTEGRATOR", "euler")
        cr.update(euler, 0.1)
        # Euler moves with the end-of-step velocity, so it falls further
        assert np.all(euler['node_position'][:4, 1] < square_creature['node_position'][:4, 1])

    def test_unknown_integrator_is_rejected(self):
        with pytest.raises(ValueError):
            get_kernels("leapfrog")


# ---------------------------------------------------------------------------
# Work buffers
# ---------------------------------------------------------------------------

class TestScratch:
    def test_one_buffer_per_thread(self):
        assert cr._scratch() is cr._scratch()
        with ThreadPoolExecutor(max_workers=1) as pool:
            other = pool.submit(cr._scratch).result()
        assert other is not cr._scratch()

    def test_kernels_work_in_the_callers_buffer(self, square_creature):
        update, _ = get_kernels()
        scratch = np.full((2, 3), np.nan)
        energy = update(*cr._body(square_creature), 0.1, scratch)
        assert energy == 0.0
        assert np.isfinite(scratch).all()
