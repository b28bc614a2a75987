import numpy as np
import matplotlib.pyplot as plt
import argparse
import springform_engine.config as cfg
import os
import csv

def load_history(run_number: int):
    """Loads and parses the history file for a given run."""
    filename = os.path.join(cfg.OUTPUT_DIR, f"run_{run_number}_history.csv")
    print(f"Loading history from {filename}...")
    try:
        with open(filename, 'r', newline='') as f:
            reader = csv.reader(f)
            next(reader)  # Skip header
            rows = [[float(val) for val in row] for row in reader if row]
    except (FileNotFoundError, IOError, StopIteration):
        print(f"Error: History file '{filename}' not found or is empty.")
        return None
    except ValueError:
        print(f"Error: Could not parse data in {filename}. The file may be corrupted.")
        return None
    return np.array(rows).reshape(-1, len(cfg.HISTORY_KEYS))

def _style_axes(ax, xlabel, ylabel):
    ax.set_facecolor('#0a0a0a')
    ax.set_xlabel(xlabel, color='white')
    ax.set_ylabel(ylabel, color='white')
    ax.tick_params(colors='white')
    ax.grid(True, alpha=0.3)

def plot_history(history: np.ndarray, run_number: int):
    """Best fitness and body size of the best creature per generation."""
    columns = {key: history[:, i] for i, key in enumerate(cfg.HISTORY_KEYS)}
    generations = columns['generation']

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 8), sharex=True)
    fig.patch.set_facecolor('#0a0a0a')

    ax1.set_title(f'Evolution Summary - Run #{run_number}', color='white', fontsize=16, fontweight='bold')
    _style_axes(ax1, '', 'Best Fitness')
    ax1.plot(generations, columns['best_fitness'], color='#00FF00', linewidth=2, marker='o', markersize=3)

    _style_axes(ax2, 'Generation', 'Body Size')
    ax2.plot(generations, columns['best_nodes'], color='#00DDDD', label='Nodes', linewidth=2)
    ax2.plot(generations, columns['best_muscles'], color='#FFAA00', label='Muscles', linewidth=2, linestyle='--')
    ax2.legend(facecolor='#1a1a1a', edgecolor='gray')
    for text in ax2.get_legend().get_texts():
        text.set_color('white')

    plt.tight_layout()
    plt.show()

def main(run_number):
    history = load_history(run_number)
    if history is None or len(history) == 0:
        print("Failed to load history data.")
        return

    print(f"\n=== EVOLUTION SUMMARY - RUN #{run_number} ===")
    print(f"Generations: {len(history)}")
    print(f"First best fitness: {history[0, 1]:+.4f}")
    print(f"Final best fitness: {history[-1, 1]:+.4f}")
    print(f"Final body: {int(history[-1, 2])} nodes, {int(history[-1, 3])} muscles")
    plot_history(history, run_number)

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Springform evolution history charts")
    parser.add_argument("run_number", type=int, help="The run number to chart")
    args = parser.parse_args()
    main(args.run_number)
