"""
Diagnostic recording of carrier group trajectories.

When enabled, every charge group records its position at fixed time
intervals (`output_plots_step`). Recording is ordered per event, so events
with recording enabled are never processed in parallel.
"""

from dataclasses import dataclass, field
from typing import List

import numpy as np

from carrier_mc.core.carrier import CarrierState, CarrierType


@dataclass
class Trajectory:
    """Sampled path of one charge group [cm]."""
    global_time: float
    charge: int
    carrier_type: CarrierType
    state: CarrierState = CarrierState.MOTION
    points: List[np.ndarray] = field(default_factory=list)

    def sample(self, position: np.ndarray, time: float, plot_step: float):
        """Append the position for every plot step reached up to `time`."""
        time_idx = int(time / plot_step)
        while len(self.points) <= time_idx:
            self.points.append(np.array(position, dtype=np.float64))

    def as_array(self) -> np.ndarray:
        if not self.points:
            return np.empty((0, 3))
        return np.vstack(self.points)


def diagnostic_state(state: CarrierState, time: float, integration_time: float,
                     last_position: np.ndarray, sensor_center_z: float, thickness: float) -> CarrierState:
    """
    State shown for a recorded trajectory.

    Groups that used up the integration window, or whose last interior
    position is within the backside 5% of the sensor, are shown as UNKNOWN.
    """
    backside = sensor_center_z - thickness * 0.45
    if time >= integration_time or last_position[2] < backside:
        return CarrierState.UNKNOWN
    return state
