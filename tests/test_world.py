"""Integration tests for the World driver."""

import numpy as np
import pytest

from springform_engine import config as cfg
from springform_engine.creature import validate
from springform_engine.persistence import load_creature
from springform_engine.world import World


@pytest.fixture
def world():
    w = World(seed=11, population_size=8)
    yield w
    w.close()


class TestWorld:
    def test_seeding_reports_the_population(self, capsys):
        w = World(seed=3, population_size=6)
        w.close()
        assert "World seeded: 6 random creatures" in capsys.readouterr().out

    def test_same_seed_same_population(self):
        a, b = World(seed=5, population_size=6), World(seed=5, population_size=6)
        assert a.engine.population.tobytes() == b.engine.population.tobytes()
        a.close()
        b.close()

    def test_run_returns_one_row_per_generation(self, world, monkeypatch, capsys):
        monkeypatch.setattr(cfg, "TICKER_INTERVAL", 1)
        history = world.run(generations=3, target=-np.inf)
        assert history.shape == (3, len(cfg.HISTORY_KEYS))
        np.testing.assert_array_equal(history[:, 0], [1, 2, 3])
        assert np.all(np.diff(history[:, 1]) >= 0.0)
        assert history[-1, 1] == world.best_fitness
        assert np.all(history[:, 2] >= cfg.MIN_NODES)

        out = capsys.readouterr().out
        assert "Evolution Engaged" in out
        assert "Generation 3/3" in out
        assert "Evolution Complete: 3 generations" in out

    def test_reaching_the_target_stops_early(self, world):
        history = world.run(generations=5, target=np.inf)
        assert len(history) == 1

    def test_save_best(self, world, tmp_path):
        with pytest.raises(ValueError):
            world.save_best(tmp_path / "none.creature")
        world.run(generations=1)
        path = tmp_path / "best.creature"
        world.save_best(path)
        loaded = load_creature(path)
        assert validate(loaded) == []
        assert loaded['fitness'] == world.best_fitness

    def test_generations_must_be_positive(self, world):
        with pytest.raises(ValueError):
            world.run(generations=0)
