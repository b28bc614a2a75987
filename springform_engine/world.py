# springform_engine/world.py

import numpy as np

from . import config as cfg # Relative imports
from . import creature
from .genetic import GeneticEngine
from .persistence import save_creature

# ==============================================================================
# THE PYTHON WORLD CLASS
# ==============================================================================
class World:
    """Prepares a random creature population and drives the genetic engine over it."""
    def __init__(self, seed=None, population_size=cfg.POPULATION_SIZE, workers=cfg.WORKERS):
        if seed is not None:
            np.random.seed(seed)
        self.population_size = population_size
        self.engine = GeneticEngine(
            creature.CREATURE_DTYPE, population_size,
            creature.engine_randomize, creature.engine_breed, creature.engine_fitness,
            workers=workers,
        )
        population = self.engine.population
        print(f"World seeded: {population_size} random creatures "
              f"(mean {population['n_nodes'].mean():.1f} nodes, {population['n_muscles'].mean():.1f} muscles)")

    @property
    def best(self):
        return self.engine.best

    @property
    def best_fitness(self):
        """Raw walking fitness of the best creature (higher is better)."""
        return -self.engine.best_fitness

    def run(self, generations=cfg.MAX_GENERATIONS, target=cfg.TARGET_FITNESS) -> np.ndarray:
        """Evolves until the target is met or `generations` pass. Returns one history row per generation."""
        if generations < 1:
            raise ValueError(f"generations must be at least 1, got {generations}")
        history = np.zeros((generations, len(cfg.HISTORY_KEYS)))

        def record(generation, engine):
            best = engine.best
            history[generation - 1] = [generation, -engine.best_fitness, best['n_nodes'], best['n_muscles']]
            if generation % cfg.TICKER_INTERVAL == 0:
                print(f"  Generation {generation}/{generations} | best fitness {-engine.best_fitness:+.4f} | "
                      f"{best['n_nodes']} nodes, {best['n_muscles']} muscles")

        print(f"--- Evolution Engaged: {self.population_size} creatures, up to {generations} generations ---")
        completed = self.engine.solve(target, timeout=generations, callback=record)
        print(f"--- Evolution Complete: {completed} generations, best fitness {self.best_fitness:+.4f} ---")
        return history[:completed]

    def save_best(self, path):
        if self.best is None:
            raise ValueError("No generation has run yet")
        save_creature(path, self.best)
        print(f"Best creature saved to {path}")

    def close(self):
        self.engine.close()
