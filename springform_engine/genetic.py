# springform_engine/genetic.py

from concurrent.futures import ThreadPoolExecutor

import numpy as np

from . import config as cfg
from .exceptions import AllocationError, EngineClosedError
from .heap import FitnessHeap


def _allocate(count, dtype):
    return np.zeros(count, dtype=dtype)


class GeneticEngine:
    """
    Generational genetic algorithm over a fixed-size population of numpy records.

    Entities are opaque records of `entity_dtype`; the engine only knows them
    through three callables:
        randomize(entity)
        breed(mother, father, son, daughter)
        fitness(entity) -> float, lower is better
    Every buffer is allocated here, once. A generation only overwrites slots.
    """
    def __init__(self, entity_dtype, population_size, randomize, breed, fitness, workers=1):
        if population_size < cfg.MIN_POPULATION:
            raise ValueError(f"population_size must be at least {cfg.MIN_POPULATION}, got {population_size}")
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")

        self.entity_dtype = np.dtype(entity_dtype)
        self.population_size = population_size
        self.newborn_count = 2 * (population_size // 4)
        self.randomize, self.breed, self.fitness = randomize, breed, fitness
        self.population = self.newborn = self.heap = self.scores = None
        self._pool = None
        self._closed = False

        try:
            self.population = _allocate(population_size, self.entity_dtype)
            self.newborn = _allocate(self.newborn_count, self.entity_dtype)
            self.scores = _allocate(population_size, np.float64)
            self.heap = FitnessHeap(population_size)
        except MemoryError as e:
            self._release()
            raise AllocationError(f"Cannot allocate a population of {population_size} entities") from e

        if workers > 1:
            self._pool = ThreadPoolExecutor(max_workers=workers)
        self.workers = workers

        self.best = None
        self.best_fitness = np.inf
        self.generations = 0
        for i in range(population_size):
            self.randomize(self.population[i])

    # --- Lifecycle ---
    def _release(self):
        self.population = self.newborn = self.heap = self.scores = None

    def close(self):
        if self._closed:
            return
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None
        self.best = None
        self._release()
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def _check_open(self):
        if self._closed:
            raise EngineClosedError("GeneticEngine has been closed")

    # --- One generation ---
    def _score(self, index):
        self.scores[index] = self.fitness(self.population[index])

    def generation(self):
        """Score, rank, breed the top pairs, replace the next-ranked slots, re-randomize the rest."""
        self._check_open()
        population, heap = self.population, self.heap

        if self._pool is None:
            for i in range(self.population_size):
                self._score(i)
        else:
            for _ in self._pool.map(self._score, range(self.population_size)):
                pass

        heap.clear()
        for i in range(self.population_size):
            score = self.scores[i]
            heap.push(np.inf if np.isnan(score) else score, i)

        self.best_fitness, best_index = heap.top()
        self.best = population[best_index]

        for n in range(0, self.newborn_count, 2):
            _, mother = heap.pop()
            _, father = heap.pop()
            self.breed(population[mother], population[father], self.newborn[n], self.newborn[n + 1])

        for n in range(self.newborn_count):
            _, slot = heap.pop()
            population[slot] = self.newborn[n]

        while not heap.is_empty():
            _, slot = heap.pop()
            self.randomize(population[slot])

        self.generations += 1

    def solve(self, fitness, timeout=cfg.TIMEOUT_NONE, callback=None):
        """
        Runs generations until the best fitness reaches `fitness` (returns the
        number of generations run) or `timeout` generations pass (returns `timeout`).
        """
        self._check_open()
        generation = 0
        while timeout == cfg.TIMEOUT_NONE or generation < timeout:
            self.generation()
            generation += 1
            if callback is not None:
                callback(generation, self)
            if self.best_fitness <= fitness:
                return generation
        return timeout
