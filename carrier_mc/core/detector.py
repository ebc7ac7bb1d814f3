"""
Detector collaborator: sensor volume, fields and doping.

Propagation only needs a handful of queries from the detector; this module
provides a simple implementation of them:

    BoxSensor       rectangular sensor volume centred on `sensor_center`
    Detector        sensor model + field/doping providers + placement
    ConstantField   field provider returning the same vector everywhere
    LinearField     field varying linearly along z (planar diode)

Providers are plain callables `provider(point) -> vector` (or scalar for
doping), so anything from an analytic function to an interpolated mesh can
be plugged in. They must be picklable for multiprocessing.
"""

from typing import Callable, Optional, Sequence

import numba
import numpy as np

FieldFunction = Callable[[np.ndarray], np.ndarray]
DopingFunction = Callable[[np.ndarray], float]

_ZERO = np.zeros(3)
_ZERO.setflags(write=False)


@numba.njit(cache=True)
def box_intercept(lower: np.ndarray, upper: np.ndarray,
                  inside: np.ndarray, outside: np.ndarray) -> np.ndarray:
    """
    Point where the segment inside -> outside leaves an axis-aligned box.

    Linear interpolation along the segment to the first face crossed.

    Parameters:
        lower, upper: Box corners [cm]
        inside: Last position inside the box [cm]
        outside: First position outside the box [cm]

    Returns:
        Intercept point on the box surface [cm]
    """
    t_exit = 1.0
    for axis in range(3):
        delta = outside[axis] - inside[axis]
        if outside[axis] > upper[axis] and delta > 0.0:
            t = (upper[axis] - inside[axis]) / delta
        elif outside[axis] < lower[axis] and delta < 0.0:
            t = (lower[axis] - inside[axis]) / delta
        else:
            continue
        if t < t_exit:
            t_exit = t

    if t_exit < 0.0:
        t_exit = 0.0

    # Clamp onto the box, also when the start point already lies outside
    result = np.empty(3, dtype=np.float64)
    for axis in range(3):
        value = inside[axis] + t_exit * (outside[axis] - inside[axis])
        result[axis] = min(max(value, lower[axis]), upper[axis])
    return result


class BoxSensor:
    """
    Rectangular sensor volume.

    The collection face is the +z surface, the backside the -z surface,
    matching local sensor coordinates where implants sit on top.
    """

    def __init__(self, size: Sequence[float], center: Sequence[float] = (0.0, 0.0, 0.0)):
        """
        Parameters:
            size: Edge lengths (x, y, z) [cm]; z is the sensor thickness
            center: Centre of the sensor in local coordinates [cm]
        """
        self.sensor_size = np.array(size, dtype=np.float64)
        self.sensor_center = np.array(center, dtype=np.float64)
        if np.any(self.sensor_size <= 0):
            raise ValueError(f"Sensor size must be positive, got {self.sensor_size}")
        self._lower = self.sensor_center - self.sensor_size / 2.0
        self._upper = self.sensor_center + self.sensor_size / 2.0

    @property
    def thickness(self) -> float:
        return float(self.sensor_size[2])

    def is_within_sensor(self, point: np.ndarray) -> bool:
        return bool(np.all(point >= self._lower) and np.all(point <= self._upper))

    def get_sensor_intercept(self, inside: np.ndarray, outside: np.ndarray) -> np.ndarray:
        """Intercept of the trajectory inside -> outside with the sensor surface."""
        return box_intercept(self._lower, self._upper,
                             np.asarray(inside, dtype=np.float64),
                             np.asarray(outside, dtype=np.float64))

    def __repr__(self) -> str:
        return f"BoxSensor(size={self.sensor_size.tolist()}, center={self.sensor_center.tolist()})"


class ConstantField:
    """Homogeneous field, e.g. a magnetic field or an over-depleted sensor."""

    def __init__(self, vector: Sequence[float]):
        self.vector = np.array(vector, dtype=np.float64)
        self.vector.setflags(write=False)

    def __call__(self, point: np.ndarray) -> np.ndarray:
        return self.vector


class LinearField:
    """
    Field along z growing linearly through the sensor thickness.

    E_z(z) = slope * (z - z0) + offset, zero outside [z_min, z_max].
    """

    def __init__(self, offset: float, slope: float, z0: float = 0.0,
                 z_min: float = -np.inf, z_max: float = np.inf):
        self.offset = float(offset)
        self.slope = float(slope)
        self.z0 = float(z0)
        self.z_min = float(z_min)
        self.z_max = float(z_max)

    def __call__(self, point: np.ndarray) -> np.ndarray:
        z = point[2]
        if z < self.z_min or z > self.z_max:
            return _ZERO
        return np.array([0.0, 0.0, self.slope * (z - self.z0) + self.offset])


class ConstantDoping:
    """Uniform effective doping [1/cm^3]; positive is n-type."""

    def __init__(self, concentration: float):
        self.concentration = float(concentration)

    def __call__(self, point: np.ndarray) -> float:
        return self.concentration


class Detector:
    """
    Sensor model with its fields, doping profile and placement.

    Field queries fall back to zero vectors where no provider is set, doping
    to zero when no profile is loaded. All queries are side-effect free and
    may be shared between worker processes.
    """

    def __init__(self, model: BoxSensor,
                 electric_field: Optional[FieldFunction] = None,
                 magnetic_field: Optional[FieldFunction] = None,
                 doping_profile: Optional[DopingFunction] = None,
                 position: Sequence[float] = (0.0, 0.0, 0.0),
                 orientation: Optional[np.ndarray] = None,
                 name: str = 'detector'):
        """
        Parameters:
            model: Sensor model providing containment and interception
            electric_field: Callable returning E [V/cm] at a local point
            magnetic_field: Callable returning B [V s/cm^2] at a local point
            doping_profile: Callable returning effective doping [1/cm^3]
            position: Global position of the local origin [cm]
            orientation: 3x3 rotation matrix local -> global (identity if None)
            name: Detector name used in log messages
        """
        self.model = model
        self.name = name
        self._electric_field = electric_field
        self._magnetic_field = magnetic_field
        self._doping_profile = doping_profile
        self.position = np.array(position, dtype=np.float64)
        self.orientation = np.eye(3) if orientation is None else np.array(orientation, dtype=np.float64)
        if self.orientation.shape != (3, 3):
            raise ValueError("Orientation must be a 3x3 rotation matrix")

    @property
    def has_electric_field(self) -> bool:
        return self._electric_field is not None

    @property
    def has_magnetic_field(self) -> bool:
        return self._magnetic_field is not None

    @property
    def has_doping_profile(self) -> bool:
        return self._doping_profile is not None

    def get_electric_field(self, point: np.ndarray) -> np.ndarray:
        if self._electric_field is None:
            return _ZERO
        return np.asarray(self._electric_field(point), dtype=np.float64)

    def get_magnetic_field(self, point: np.ndarray) -> np.ndarray:
        if self._magnetic_field is None:
            return _ZERO
        return np.asarray(self._magnetic_field(point), dtype=np.float64)

    def get_doping_concentration(self, point: np.ndarray) -> float:
        if self._doping_profile is None:
            return 0.0
        return float(self._doping_profile(point))

    def get_global_position(self, local_point: np.ndarray) -> np.ndarray:
        return self.orientation @ np.asarray(local_point, dtype=np.float64) + self.position

    def __repr__(self) -> str:
        return (f"Detector({self.name!r}, model={self.model!r}, "
                f"E={self.has_electric_field}, B={self.has_magnetic_field}, "
                f"doping={self.has_doping_profile})")
