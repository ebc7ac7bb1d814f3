"""
Embedded Runge-Kutta integration of carrier trajectories.

Runge-Kutta-Fehlberg 4(5): six velocity evaluations per step give a fifth
order solution and an embedded fourth order one; their difference is the
local error estimate used for step size control.

The integrator state is an immutable value (position, time, timestep).
Stepping is a pure function of the velocity field and the state, so the
propagation loop owns the state and decides how to adapt it.

Reference:
    Fehlberg, NASA Technical Report R-315 (1969)
"""

from typing import NamedTuple

import numpy as np

from carrier_mc.transport.velocity import VelocityFunction


class Tableau(NamedTuple):
    """Butcher tableau of an embedded explicit Runge-Kutta method."""
    a: np.ndarray
    b_high: np.ndarray
    b_low: np.ndarray
    c: np.ndarray

    @property
    def stages(self) -> int:
        return len(self.c)


RKF45 = Tableau(
    a=np.array([
        [0.0, 0.0, 0.0, 0.0, 0.0],
        [1.0 / 4.0, 0.0, 0.0, 0.0, 0.0],
        [3.0 / 32.0, 9.0 / 32.0, 0.0, 0.0, 0.0],
        [1932.0 / 2197.0, -7200.0 / 2197.0, 7296.0 / 2197.0, 0.0, 0.0],
        [439.0 / 216.0, -8.0, 3680.0 / 513.0, -845.0 / 4104.0, 0.0],
        [-8.0 / 27.0, 2.0, -3544.0 / 2565.0, 1859.0 / 4104.0, -11.0 / 40.0],
    ]),
    b_high=np.array([16.0 / 135.0, 0.0, 6656.0 / 12825.0, 28561.0 / 56430.0, -9.0 / 50.0, 2.0 / 55.0]),
    b_low=np.array([25.0 / 216.0, 0.0, 1408.0 / 2565.0, 2197.0 / 4104.0, -1.0 / 5.0, 0.0]),
    c=np.array([0.0, 1.0 / 4.0, 3.0 / 8.0, 12.0 / 13.0, 1.0, 1.0 / 2.0]),
)


class StepperState(NamedTuple):
    """Integrator state: position [cm], elapsed time [s], current timestep [s]."""
    position: np.ndarray
    time: float
    timestep: float

    def with_position(self, position: np.ndarray) -> 'StepperState':
        return self._replace(position=np.asarray(position, dtype=np.float64))

    def with_timestep(self, timestep: float) -> 'StepperState':
        return self._replace(timestep=float(timestep))


class Step(NamedTuple):
    """Result of one step: displacement and local error estimate [cm]."""
    value: np.ndarray
    error: np.ndarray


def initial_state(position, timestep: float, time: float = 0.0) -> StepperState:
    return StepperState(np.array(position, dtype=np.float64), float(time), float(timestep))


def rk_step(velocity: VelocityFunction, state: StepperState, tableau: Tableau = RKF45):
    """
    Take one embedded Runge-Kutta step.

    Parameters:
        velocity: Function (time, position) -> velocity [cm/s]
        state: Current integrator state
        tableau: Embedded Butcher tableau

    Returns:
        (new_state, Step): state advanced by one timestep, and the step
        displacement with its error estimate
    """
    h = state.timestep
    k = np.empty((tableau.stages, 3), dtype=np.float64)
    for i in range(tableau.stages):
        stage_position = state.position + h * (tableau.a[i, :i] @ k[:i])
        k[i] = velocity(state.time + tableau.c[i] * h, stage_position)

    value = h * (tableau.b_high @ k)
    error = h * ((tableau.b_high - tableau.b_low) @ k)

    new_state = StepperState(state.position + value, state.time + h, h)
    return new_state, Step(value, error)


def advance_time(state: StepperState, delay: float) -> StepperState:
    """Advance the elapsed time without moving, e.g. while a carrier is trapped."""
    return state._replace(time=state.time + delay)


# ============================================================================
# Example Usage
# ============================================================================

if __name__ == "__main__":
    print("\n" + "="*70)
    print("RKF45 on uniform rotation (exact solution: unit circle)")
    print("="*70)

    omega = 1.0

    def rotation(t, x):
        return np.array([-omega * x[1], omega * x[0], 0.0])

    state = initial_state([1.0, 0.0, 0.0], timestep=0.1)
    max_error = 0.0
    while state.time < 2.0 * np.pi:
        state, step = rk_step(rotation, state)
        max_error = max(max_error, float(np.linalg.norm(step.error)))

    radius = np.linalg.norm(state.position)
    print(f"  Time: {state.time:.3f}")
    print(f"  Radius after one turn: {radius:.10f}")
    print(f"  Largest local error estimate: {max_error:.3e}")
