# Evolution runner: evolves walking creatures and saves the best of each run.

import csv
import argparse
import os
import numpy as np
from springform_engine.world import World
from springform_engine.creature import describe, fitness
from springform_engine.exceptions import CreatureFormatError
from springform_engine.persistence import load_creature
import springform_engine.config as cfg

def save_history(history: np.ndarray, run_number: int):
    """Saves the per-generation history of a run to a CSV file."""
    os.makedirs(cfg.OUTPUT_DIR, exist_ok=True)
    filename = os.path.join(cfg.OUTPUT_DIR, f"run_{run_number}_history.csv")

    with open(filename, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(cfg.HISTORY_KEYS)
        writer.writerows(history)
    print(f"Successfully saved history to {filename}")

def evolve(num_runs: int, generations: int, population: int, seed, workers: int):
    """
    Runs a number of separate, independent evolutions.
    """
    print(f"--- Preparing to run {num_runs} evolution(s). ---")

    for run_number in range(1, num_runs + 1):
        print(f"\n--- Starting Evolution #{run_number}/{num_runs} ---")

        # 1. A fresh population for each run; consecutive seeds keep runs distinct.
        run_seed = None if seed is None else seed + run_number - 1
        world = World(seed=run_seed, population_size=population, workers=workers)

        # 2. Evolve.
        try:
            history = world.run(generations)

            # 3. Save the results.
            save_history(history, run_number)
            os.makedirs(cfg.OUTPUT_DIR, exist_ok=True)
            world.save_best(os.path.join(cfg.OUTPUT_DIR, f"run_{run_number}_best.creature"))
        except OSError as e:
            print(f"Error: Could not save the results of run {run_number}: {e}")
        finally:
            world.close()

        print(f"--- Evolution #{run_number} Complete ---")

def show(path: str):
    """Prints a saved creature and re-evaluates its walk."""
    try:
        creature = load_creature(path)
    except OSError as e:
        print(f"Error: Creature file '{path}' could not be read: {e}")
        return
    except CreatureFormatError as e:
        print(f"Error: {path} is not a valid creature file. {e}")
        return

    creature['fitness'] = cfg.FITNESS_INVALID
    print(describe(creature))
    print(f"Fresh evaluation: fitness {fitness(creature):+.4f}")

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the Springform evolution harness.")
    commands = parser.add_subparsers(dest="command", required=True)

    evolve_parser = commands.add_parser("evolve", help="Evolve creatures and save the best one of each run")
    evolve_parser.add_argument("num_runs", type=int, nargs='?', default=1)
    evolve_parser.add_argument("--generations", type=int, default=cfg.MAX_GENERATIONS)
    evolve_parser.add_argument("--population", type=int, default=cfg.POPULATION_SIZE)
    evolve_parser.add_argument("--seed", type=int, default=None)
    evolve_parser.add_argument("--workers", type=int, default=cfg.WORKERS)

    show_parser = commands.add_parser("show", help="Describe and re-evaluate a saved creature")
    show_parser.add_argument("path")

    args = parser.parse_args()
    if args.command == "evolve":
        evolve(args.num_runs, args.generations, args.population, args.seed, args.workers)
    else:
        show(args.path)
