import numpy as np
import matplotlib.pyplot as plt
from matplotlib.widgets import Button
from mpl_toolkits.mplot3d.art3d import Line3DCollection
import argparse
import springform_engine.config as cfg
from springform_engine.creature import (animate, centroid, fitness, is_dead, muscle_segments,
                                        node_colors, node_positions, reset)
from springform_engine.exceptions import CreatureFormatError
from springform_engine.persistence import load_creature

# Playback constants
FRAME_TIME = 1.0 / 30.0      # Simulated seconds per frame
NODE_SIZE = 60
VIEW_RADIUS = 2.5            # Half-width of the followed view box
SPEEDS = [66, 33, 16]        # Milliseconds between frames

class CreaturePlayback:
    """Interactive 3D playback of one saved creature, driven live by the physics engine."""

    def __init__(self, creature, title):
        self.creature = creature
        self.title = title
        self.is_playing = False
        self.frames = 0
        reset(self.creature)
        self.origin = centroid(self.creature)

        # Setup the UI
        self._setup_ui()
        self._setup_scene()
        self._setup_controls()
        self._setup_stats_panel()

        self.draw()

    def _setup_ui(self):
        """Setup the main UI layout."""
        self.fig = plt.figure(figsize=(16, 10))
        self.fig.patch.set_facecolor('#0a0a0a')

        gs = self.fig.add_gridspec(12, 12, hspace=0.4, wspace=0.3)

        # Main scene (left), stats (right), controls (bottom)
        self.ax_main = self.fig.add_subplot(gs[0:10, 0:8], projection='3d')
        self.ax_stats = self.fig.add_subplot(gs[0:10, 8:12])
        self.ax_play_btn = self.fig.add_subplot(gs[11, 0:2])
        self.ax_speed_btn = self.fig.add_subplot(gs[11, 2:4])
        self.ax_reset_btn = self.fig.add_subplot(gs[11, 4:6])

    def _setup_scene(self):
        """Setup the 3D axes. Simulation Y is up, so it is drawn on the plot's Z axis."""
        self.ax_main.set_facecolor('#000511')
        self.ax_main.set_title(self.title, color='white', fontsize=16, fontweight='bold', pad=20)
        self.ax_main.set_xlabel('X (forward)', color='white')
        self.ax_main.set_ylabel('Z', color='white')
        self.ax_main.set_zlabel('Height', color='white')
        self.ax_main.tick_params(colors='white')

        self.muscle_lines = Line3DCollection([], linewidths=2)
        self.ax_main.add_collection3d(self.muscle_lines)
        self.node_scatter = None

    def _setup_controls(self):
        """Setup playback controls."""
        self.btn_play = Button(self.ax_play_btn, 'Play', color='#4CAF50')
        self.btn_play.on_clicked(self.toggle_play)

        self.btn_speed = Button(self.ax_speed_btn, '1x', color='#2196F3')
        self.btn_speed.on_clicked(self.cycle_speed)
        self.current_speed_idx = 1

        self.btn_reset = Button(self.ax_reset_btn, 'Reset', color='#FF5722')
        self.btn_reset.on_clicked(self.reset_view)

        self.animation_timer = self.fig.canvas.new_timer(interval=SPEEDS[self.current_speed_idx])
        self.animation_timer.add_callback(self.play_step)

    def _setup_stats_panel(self):
        self.ax_stats.set_facecolor('#0a0a0a')
        self.ax_stats.set_xticks([])
        self.ax_stats.set_yticks([])
        self.ax_stats.set_title('Creature Statistics', color='white', fontweight='bold', fontsize=14)

        self.stats_text = self.ax_stats.text(
            0.05, 0.95, '',
            color='white',
            fontsize=10,
            fontfamily='monospace',
            verticalalignment='top',
            transform=self.ax_stats.transAxes
        )

    def toggle_play(self, event):
        """Toggle play/pause state."""
        if self.is_playing:
            self.is_playing = False
            self.btn_play.label.set_text('Play')
            self.animation_timer.stop()
        else:
            self.is_playing = True
            self.btn_play.label.set_text('Pause')
            self.animation_timer.start()

    def cycle_speed(self, event):
        """Cycle through playback speeds."""
        if self.is_playing:
            self.animation_timer.stop()

        self.current_speed_idx = (self.current_speed_idx + 1) % len(SPEEDS)
        self.btn_speed.label.set_text(['0.5x', '1x', '2x'][self.current_speed_idx])
        self.animation_timer.interval = SPEEDS[self.current_speed_idx]

        if self.is_playing:
            self.animation_timer.start()

    def reset_view(self, event):
        """Back to the resting pose at time zero."""
        if self.is_playing:
            self.toggle_play(event)
        reset(self.creature)
        self.frames = 0
        self.draw()

    def play_step(self):
        """Advance the simulation by one frame."""
        if not self.is_playing:
            return
        animate(self.creature, FRAME_TIME)
        self.frames += 1
        self.draw()

    def draw(self):
        positions = node_positions(self.creature)
        colors = node_colors(self.creature)
        segments = muscle_segments(self.creature)

        # Swap Y and Z so that height points up on screen
        self.muscle_lines.set_segments(segments[:, :, [0, 2, 1]])
        self.muscle_lines.set_color(colors[self.creature['muscle_first'][:len(segments)]])

        if self.node_scatter is not None:
            self.node_scatter.remove()
        self.node_scatter = self.ax_main.scatter(
            positions[:, 0], positions[:, 2], positions[:, 1],
            c=colors, s=NODE_SIZE, edgecolors='white', depthshade=False
        )

        center = positions.mean(axis=0)
        self.ax_main.set_xlim(center[0] - VIEW_RADIUS, center[0] + VIEW_RADIUS)
        self.ax_main.set_ylim(center[2] - VIEW_RADIUS, center[2] + VIEW_RADIUS)
        self.ax_main.set_zlim(0.0, 2.0 * VIEW_RADIUS)

        self._update_stats_panel(center)
        self.fig.canvas.draw_idle()

    def _update_stats_panel(self, center):
        displacement = center - self.origin
        creature = self.creature
        state = "EXHAUSTED" if is_dead(creature) else "active"
        lines = [
            f"Time:          {self.frames * FRAME_TIME:8.2f} s",
            f"Cycle clock:   {creature['clock']:8.4f} s",
            f"Action slot:   {creature['action']:8d}",
            f"Energy:        {creature['energy']:8.1f} ({state})",
            "",
            f"Nodes:         {creature['n_nodes']:8d}",
            f"Muscles:       {creature['n_muscles']:8d}",
            f"Contracted:    {np.count_nonzero(creature['muscle_is_contracted'][:creature['n_muscles']]):8d}",
            "",
            f"Displacement X:{displacement[0]:+9.3f}",
            f"Displacement Y:{displacement[1]:+9.3f}",
            f"Displacement Z:{displacement[2]:+9.3f}",
        ]
        self.stats_text.set_text("\n".join(lines))

    def run(self):
        plt.show()

def main(path):
    """Main function to launch playback."""
    print(f"Loading creature from {path}...")
    try:
        creature = load_creature(path)
    except OSError as e:
        print(f"Error: Creature file '{path}' could not be read: {e}")
        return
    except CreatureFormatError as e:
        print(f"Error: {path} is not a valid creature file. {e}")
        return

    print(f"Loaded creature with {creature['n_nodes']} nodes and {creature['n_muscles']} muscles")
    creature['fitness'] = cfg.FITNESS_INVALID
    print(f"Walking fitness: {fitness(creature):+.4f}")

    playback = CreaturePlayback(creature, f'Springform - {path}')
    playback.run()

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Springform creature playback")
    parser.add_argument("path", help="A .creature file saved by main.py")
    args = parser.parse_args()
    main(args.path)
