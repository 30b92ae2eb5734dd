"""Offline driver: run an effect through a speed profile and record per-frame history."""

import os

import numpy as np
import pandas as pd
from tqdm import tqdm
from scipy import signal
from scipy.interpolate import interp1d

from effect_base import speed_factor


def setup_speed_profile(speed_mode, **speed_kwargs):
    """
    Speed as a function of time.

    Parameters
    ----------
    speed_mode : str
        'constant' (speed=0.0), 'file' (speed_file='path.xlsx' or '.csv',
        first column time [s], second column speed) or 'function'
        (speed_function=callable)
    """
    if speed_mode == 'constant':
        speed = speed_kwargs.get('speed', 0.0)
        return lambda t: speed

    elif speed_mode == 'file':
        speed_file = speed_kwargs.get('speed_file')
        if speed_file is None:
            raise ValueError("speed_file must be provided for mode='file'")
        if os.path.splitext(speed_file)[1].lower() == '.csv':
            df = pd.read_csv(speed_file)
        else:
            df = pd.read_excel(speed_file)
        time_data = df.iloc[:, 0].values
        speed_data = df.iloc[:, 1].values
        interpolator = interp1d(time_data, speed_data, kind='linear', fill_value='extrapolate')
        return lambda t: max(0.0, float(interpolator(t)))

    elif speed_mode == 'function':
        speed_function = speed_kwargs.get('speed_function')
        if speed_function is None:
            raise ValueError("speed_function must be provided for mode='function'")
        return speed_function

    else:
        raise ValueError(f"Invalid speed_mode: {speed_mode}")


def record_session(effect, speed_mode, total_time, dt=1.0 / 60.0, stall_schedule=None,
                   progress=True, **speed_kwargs):
    """
    Drive an effect frame by frame and collect its state.

    Parameters
    ----------
    effect : effect_base.Effect
        Simulation to drive; it is made visible for the recording
    speed_mode : str
        'constant', 'file' or 'function' (see setup_speed_profile)
    total_time : float
        Recorded duration [s]
    dt : float
        Frame time step [s]
    stall_schedule : callable, optional
        t -> bool, wing-stall state over time
    progress : bool
        Show tqdm progress bar
    **speed_kwargs
        Passed to setup_speed_profile

    Returns
    -------
    results : pd.DataFrame
        One row per frame: time, speed, speed_factor, wing_stalled, one
        'opacity_<name>' column per subsystem, plus the effect's metrics()
    """
    get_speed = setup_speed_profile(speed_mode, **speed_kwargs)
    num_steps = int(round(total_time / dt))

    effect.set_visible(True)
    history = []
    time = 0.0
    stalled = bool(getattr(effect, 'wing_stalled', False))

    for step in tqdm(range(num_steps), desc="Recording", mininterval=0.5, unit="frame", disable=not progress):
        speed = get_speed(time)
        effect.set_speed(speed)

        if stall_schedule is not None:
            stall_now = bool(stall_schedule(time))
            if stall_now != stalled:
                effect.set_wing_stall(stall_now)
                stalled = stall_now

        effect.update(dt, time)

        row = {
            'time': time,
            'speed': speed,
            'speed_factor': speed_factor(speed),
            'wing_stalled': stalled,
        }
        for name, value in effect.opacities().items():
            row[f'opacity_{name}'] = value
        metrics = getattr(effect, 'metrics', None)
        if metrics is not None:
            row.update(metrics())
        history.append(row)

        time += dt

    return pd.DataFrame(history)


def shedding_spectrum(results_df, column='wake_spread', t_start=0.0):
    """
    Power spectral density of one recorded column (Welch).

    Returns (frequencies, psd); empty arrays when too few frames remain.
    """
    time = results_df['time'].values
    values = results_df[column].values[time >= t_start]
    if len(values) < 8:
        return np.array([]), np.array([])
    fs = 1.0 / (time[1] - time[0])
    return signal.welch(values - values.mean(), fs=fs, nperseg=min(256, len(values)))


def save_results(results_df, filename):
    """Save a recorded session to a pickle file"""
    if results_df is None:
        raise ValueError("No results to save. Record a session first.")
    results_df.to_pickle(filename)
    print(f"Results saved to {filename}")


def load_results(filename):
    """Load a recorded session from a pickle file"""
    return pd.read_pickle(filename)
