"""Static plots and animation export for the airflow visualization."""

import os
import shutil
import subprocess

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.colors import ListedColormap
from matplotlib.patches import Circle
from tqdm import tqdm

from airflow_core import pressure_field, trace_streamline_path, cp_to_color_array, CP_MIN, CP_MAX
from aero_profiles import get_profile, build_seed_list
from scene_graph import hex_to_rgb

CP_CMAP = ListedColormap(cp_to_color_array(np.linspace(CP_MIN, CP_MAX, 256)), name='cp_ramp')


def plot_pressure_field(car_type, plot_config=None, with_vortices=True):
    """
    Plot Cp around the body-normalized cylinder with traced streamlines.

    Parameters
    ----------
    car_type : str
        Vehicle class whose seeds (and vortices) are drawn
    plot_config : dict
        {'xi_range': (min, max), 'eta_range': (min, max), 'grid_size': int,
         'steps': int, 'step_size': float, 'dpi': int, 'filename': str}
    with_vortices : bool
        Superpose the profile's Rankine vortices on the Cp field
    """
    plot_config = plot_config or {}
    profile = get_profile(car_type)

    xi_range = plot_config.get('xi_range', (-5, 5))
    eta_range = plot_config.get('eta_range', (-8, 8))
    grid_size = plot_config.get('grid_size', 400)
    steps = plot_config.get('steps', 200)
    step_size = plot_config.get('step_size', 0.14)
    dpi = plot_config.get('dpi', 200)
    filename = plot_config.get('filename', f'pressure_field_{profile.name}.png')

    print(f"Computing pressure field for {profile.label}...")

    xi = np.linspace(xi_range[0], xi_range[1], grid_size)
    eta = np.linspace(eta_range[0], eta_range[1], grid_size)
    XI, ETA = np.meshgrid(xi, eta)
    vortices = profile.body_vortices() if with_vortices else ()
    cp = pressure_field(XI, ETA, vortices)

    fig, ax = plt.subplots(figsize=(8, 10))

    contour = ax.contourf(XI, ETA, np.clip(cp, CP_MIN, CP_MAX), levels=64,
                          cmap=CP_CMAP, vmin=CP_MIN, vmax=CP_MAX)
    plt.colorbar(contour, ax=ax, label='Pressure coefficient $C_p$')

    for seed in build_seed_list(profile):
        if seed.group == 'side':
            continue
        path = np.array(trace_streamline_path(seed.seed_xi, seed.seed_eta, steps, step_size))
        if len(path) > 1:
            ax.plot(path[:, 0], path[:, 1], color='white', linewidth=0.6, alpha=0.7)

    body = Circle((0, 0), 1.0, facecolor='gray', fill=True, zorder=10,
                  edgecolor='black', linewidth=2)
    ax.add_patch(body)

    ax.set_xlim(xi_range)
    ax.set_ylim(eta_range)
    ax.set_xlabel(r'$\xi$ (lateral)')
    ax.set_ylabel(r'$\eta$ (freestream)')
    ax.set_title(f'Potential flow, {profile.label}')
    ax.set_aspect('equal')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(filename, dpi=dpi, bbox_inches='tight')
    print(f"Saved {filename}")
    plt.close(fig)
    return filename


def _draw_frame(fig, simulation, plot_config):
    """Top (x-z) and side (z-y) projections of the simulation's current buffers"""
    ax_top, ax_side = fig.subplots(1, 2)
    x_range = plot_config.get('x_range', (-4.5, 4.5))
    z_range = plot_config.get('z_range', (-8, 10))
    y_range = plot_config.get('y_range', (-1.0, 2.5))

    for ax, (i, j) in ((ax_top, (0, 2)), (ax_side, (2, 1))):
        ax.set_facecolor('black')
        for line in simulation.group.primitives('line'):
            if line.opacity <= 0 or not line.visible:
                continue
            ax.plot(line.positions[:, i], line.positions[:, j], color=hex_to_rgb(line.color),
                    linewidth=0.5, alpha=min(1.0, line.opacity))
        for points in simulation.group.primitives('points'):
            if points.opacity <= 0:
                continue
            color = points.colors if points.colors is not None else [hex_to_rgb(points.color)]
            ax.scatter(points.positions[:, i], points.positions[:, j], c=color,
                       s=1.5, alpha=min(1.0, points.opacity), linewidths=0)

    ax_top.set_xlim(x_range)
    ax_top.set_ylim(z_range)
    ax_top.set_xlabel('x [m]')
    ax_top.set_ylabel('z [m]')
    ax_top.set_title('Top view')
    ax_side.set_xlim(z_range)
    ax_side.set_ylim(y_range)
    ax_side.set_xlabel('z [m]')
    ax_side.set_ylabel('y [m]')
    ax_side.set_title('Side view')

    fig.suptitle(f'{simulation.profile.label}, speed {simulation.speed:.0f}'
                 + (' (wing stalled)' if simulation.wing_stalled else ''))


def plot_frame(simulation, plot_config=None):
    """
    Snapshot of a free-flow simulation.

    Parameters
    ----------
    simulation : airflow_simulator.FreeFlowSimulation
        Simulation after at least one update
    plot_config : dict
        {'x_range': tuple, 'y_range': tuple, 'z_range': tuple, 'dpi': int, 'filename': str}
    """
    plot_config = plot_config or {}
    dpi = plot_config.get('dpi', 150)
    filename = plot_config.get('filename', 'airflow_frame.png')

    fig = plt.figure(figsize=(14, 6))
    _draw_frame(fig, simulation, plot_config)
    plt.savefig(filename, dpi=dpi, bbox_inches='tight')
    print(f"Saved {filename}")
    plt.close(fig)
    return filename


def plot_session_history(results_df, filename='session_history.png'):
    """
    Plot subsystem opacities and speed vs time, shading stalled intervals.

    Parameters
    ----------
    results_df : pd.DataFrame
        DataFrame from airflow_session.record_session()
    """
    opacity_cols = [col for col in results_df.columns if col.startswith('opacity_')]
    if len(opacity_cols) == 0:
        print("No opacity columns found in results.")
        return None

    print("Generating session history plot...")
    time = results_df['time'].values
    fig, ax = plt.subplots(figsize=(10, 5))

    for col in opacity_cols:
        ax.plot(time, results_df[col].values, linewidth=1.5, label=col[len('opacity_'):])

    stalled = results_df['wing_stalled'].values.astype(bool)
    if stalled.any():
        edges = np.flatnonzero(np.diff(np.concatenate([[0], stalled.astype(int), [0]])))
        for start, end in zip(edges[::2], edges[1::2]):
            ax.axvspan(time[start], time[end - 1], color='red', alpha=0.1)

    ax.set_xlabel('Time [s]', fontsize=12)
    ax.set_ylabel('Opacity', fontsize=12)
    ax.set_ylim(0, 1)
    ax.set_title('Effect opacity over session', fontsize=13)
    ax.grid(True, alpha=0.3)
    ax.set_xlim([time[0], time[-1]])

    ax2 = ax.twinx()
    ax2.plot(time, results_df['speed'].values, 'k--', linewidth=1.0, label='speed')
    ax2.set_ylabel('Speed', fontsize=12)

    lines1, labels1 = ax.get_legend_handles_labels()
    lines2, labels2 = ax2.get_legend_handles_labels()
    ax.legend(lines1 + lines2, labels1 + labels2, loc='upper left', fontsize=9)

    plt.tight_layout()
    plt.savefig(filename, dpi=200, bbox_inches='tight')
    print(f"Saved {filename}")
    plt.close(fig)
    return filename


def _frames_to_gif(frames_dir, total_frames, output_file, fps):
    """Assemble pre-rendered PNG frames with matplotlib's pillow writer"""
    import matplotlib.animation as animation

    fig = plt.figure(figsize=(14, 6))
    frames = []
    for frame_idx in range(total_frames):
        img = plt.imread(os.path.join(frames_dir, f'frame_{frame_idx:06d}.png'))
        im = plt.imshow(img, animated=True)
        plt.axis('off')
        frames.append([im])
    ani = animation.ArtistAnimation(fig, frames, interval=1000 / fps, blit=True)
    ani.save(output_file, writer='pillow')
    plt.close(fig)
    return output_file


def create_animation(simulation, get_speed, total_time, output_file='airflow.mp4',
                     plot_config=None, fps=30, cleanup_frames=True):
    """
    Step a simulation in real time and export the frames as a video.

    Frames are pre-rendered to PNG, then compiled with ffmpeg; without
    ffmpeg (or for a .gif target) the pillow writer is used instead.

    Parameters
    ----------
    simulation : airflow_simulator.FreeFlowSimulation
        Simulation to animate; it is made visible
    get_speed : callable
        t -> speed
    total_time : float
        Animated duration [s]
    output_file : str
        .mp4, .avi or .gif
    plot_config : dict
        Passed to the frame renderer (ranges, 'dpi')
    """
    plot_config = plot_config or {}
    dt = 1.0 / fps
    total_frames = int(round(total_time * fps))
    dpi = plot_config.get('dpi', 100)

    frames_dir = 'temp_animation_frames'
    os.makedirs(frames_dir, exist_ok=True)
    simulation.set_visible(True)

    t = 0.0
    for frame_idx in tqdm(range(total_frames), desc="Rendering frames", unit="frame"):
        simulation.set_speed(get_speed(t))
        simulation.update(dt, t)
        fig = plt.figure(figsize=(14, 6))
        _draw_frame(fig, simulation, plot_config)
        plt.savefig(os.path.join(frames_dir, f'frame_{frame_idx:06d}.png'), dpi=dpi, bbox_inches='tight')
        plt.close(fig)
        t += dt

    file_ext = os.path.splitext(output_file)[1].lower()
    if file_ext == '.gif':
        print("Creating GIF with pillow (this may take a moment)...")
        _frames_to_gif(frames_dir, total_frames, output_file, fps)
    else:
        cmd = [
            'ffmpeg', '-y',
            '-framerate', str(fps),
            '-i', os.path.join(frames_dir, 'frame_%06d.png'),
            '-vf', 'scale=trunc(iw/2)*2:trunc(ih/2)*2',
            '-c:v', 'libx264',
            '-pix_fmt', 'yuv420p',
            '-crf', '18',
            output_file,
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
            failed = result.returncode != 0
            if failed:
                print(f"ffmpeg error: {result.stderr}")
        except FileNotFoundError:
            print("ffmpeg not found.")
            failed = True

        if failed:
            output_file = os.path.splitext(output_file)[0] + '.gif'
            print(f"Falling back to pillow writer, saving as {output_file} instead...")
            _frames_to_gif(frames_dir, total_frames, output_file, fps)

    if cleanup_frames:
        shutil.rmtree(frames_dir)
    else:
        print(f"Temporary frames saved in {frames_dir}/")

    print(f"Animation saved to {output_file}")
    print(f"  Total frames: {total_frames}")
    print(f"  Frame rate: {fps} fps")
    return output_file
