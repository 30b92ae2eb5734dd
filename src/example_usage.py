"""Example usage of the airflow visualization core."""

import logging

import numpy as np

from scene_graph import Group, SceneBackend
from effect_base import create_effect, update_effects
from airflow_simulator import FreeFlowSimulation
from surface_pressure import SurfacePressureOverlay
import airflow_session
import airflow_plotting


logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')


# EXAMPLE 1: Host loop with both effects

print("=" * 60)
print("EXAMPLE 1: Host loop")
print("=" * 60)

scene = Group('scene')
airflow = create_effect(FreeFlowSimulation, scene, name='FreeFlowSimulation', seed=1)
cfd = create_effect(SurfacePressureOverlay, scene, name='SurfacePressureOverlay', seed=1)

for effect in (airflow, cfd):
    effect.set_car_type('F1')
    effect.set_visible(True)
    effect.set_speed(280)

dt = 1.0 / 60.0
for frame in range(120):
    update_effects((airflow, cfd), dt, frame * dt)

print(f"Airflow opacities: {airflow.opacities()}")
print(f"CFD opacities:     {cfd.opacities()}")
print("\n")


# EXAMPLE 2: Construction failure degrades to a stub

print("=" * 60)
print("EXAMPLE 2: Resource exhaustion")
print("=" * 60)

tiny_backend = SceneBackend(max_primitives=4)
degraded = create_effect(FreeFlowSimulation, scene, name='FreeFlowSimulation', backend=tiny_backend)
degraded.set_speed(200)
degraded.update(dt, 0.0)
print(f"Got {type(degraded).__name__}; the frame loop is unaffected")
print("\n")


# EXAMPLE 3: Pressure field and a frame snapshot

print("=" * 60)
print("EXAMPLE 3: Plots")
print("=" * 60)

airflow_plotting.plot_pressure_field('F1', plot_config={'filename': 'example_pressure_F1.png'})
airflow_plotting.plot_frame(airflow, plot_config={'filename': 'example_frame_F1.png'})
print("\n")


# EXAMPLE 4: Recorded session with a speed ramp and a wing stall

print("=" * 60)
print("EXAMPLE 4: Recorded session")
print("=" * 60)

def ramp_speed(t):
    """Accelerate to top speed over 6 s, hold, then brake"""
    if t < 6.0:
        return 350.0 * t / 6.0
    if t < 10.0:
        return 350.0
    return max(0.0, 350.0 - 120.0 * (t - 10.0))

def stall_window(t):
    return 7.0 <= t < 9.0

sim = FreeFlowSimulation(Group('scene'), car_type='GT', seed=7)
results = airflow_session.record_session(
    sim,
    speed_mode='function',
    speed_function=ramp_speed,
    stall_schedule=stall_window,
    total_time=12.0,
)

airflow_session.save_results(results, 'example_session.pkl')
results = airflow_session.load_results('example_session.pkl')
print(f"Results DataFrame shape: {results.shape}")
print(f"Columns: {list(results.columns)}")

airflow_plotting.plot_session_history(results, filename='example_session_history.png')
print("\n")


# EXAMPLE 5: Wake oscillation spectrum

print("=" * 60)
print("EXAMPLE 5: Wake spectrum")
print("=" * 60)

frequencies, psd = airflow_session.shedding_spectrum(results, column='wake_spread', t_start=6.0)
if len(psd):
    idx_peak = np.argmax(psd[1:]) + 1
    print(f"  Dominant wake frequency = {frequencies[idx_peak]:.3f} Hz")
print("\n")


print("=" * 60)
print("All examples complete!")
print("=" * 60)
