"""
Drift velocity of charge carriers in electric and magnetic fields.

Without magnetic field the drift velocity is v = sign · μ(|E|, N) · E.
With a magnetic field B the Hall deflection is included through the Hall
scattering factor r_H:

    term1 = sign · μ r_H (E × B)
    term2 = μ² r_H² (E · B) B
    v     = sign · μ (E + term1 + term2) / (1 + μ² r_H² |B|²)

The sign enters both term1 and the overall prefactor.

Hall factors approximated from http://www.ioffe.ru/SVA/NSM/Semicond/Si/electric.html
"""

from typing import Callable

import numba
import numpy as np

from carrier_mc.core.carrier import CarrierType
from carrier_mc.core.detector import Detector
from carrier_mc.physics.mobility import Mobility

ELECTRON_HALL_FACTOR = 1.15
HOLE_HALL_FACTOR = 0.9

VelocityFunction = Callable[[float, np.ndarray], np.ndarray]


def hall_factor(carrier_type: CarrierType) -> float:
    return ELECTRON_HALL_FACTOR if carrier_type is CarrierType.ELECTRON else HOLE_HALL_FACTOR


@numba.njit(cache=True)
def hall_velocity(sign: float, mobility: float, hall: float,
                  efield: np.ndarray, bfield: np.ndarray) -> np.ndarray:
    """
    Drift velocity including the Hall effect.

    Parameters:
        sign: Carrier sign (-1 electrons, +1 holes)
        mobility: Carrier mobility [cm^2/(V s)]
        hall: Hall scattering factor
        efield: Electric field [V/cm]
        bfield: Magnetic field [V s/cm^2]

    Returns:
        Velocity [cm/s]
    """
    exb = np.empty(3, dtype=np.float64)
    exb[0] = efield[1] * bfield[2] - efield[2] * bfield[1]
    exb[1] = efield[2] * bfield[0] - efield[0] * bfield[2]
    exb[2] = efield[0] * bfield[1] - efield[1] * bfield[0]
    e_dot_b = efield[0] * bfield[0] + efield[1] * bfield[1] + efield[2] * bfield[2]
    b_dot_b = bfield[0] * bfield[0] + bfield[1] * bfield[1] + bfield[2] * bfield[2]

    term1 = sign * mobility * hall * exb
    term2 = mobility * mobility * hall * hall * e_dot_b * bfield
    rnorm = 1.0 + mobility * mobility * hall * hall * b_dot_b
    return sign * mobility * (efield + term1 + term2) / rnorm


def drift_velocity(carrier_type: CarrierType, mobility: float, efield: np.ndarray) -> np.ndarray:
    """v = sign · μ · E"""
    return carrier_type.sign * mobility * efield


def make_velocity_function(detector: Detector, mobility: Mobility, carrier_type: CarrierType,
                           magnetic_field: bool = False) -> VelocityFunction:
    """
    Build the right-hand side dx/dt = v(t, x) for the integrator.

    Fields and doping are looked up at every evaluation, nothing is cached
    between steps.

    Parameters:
        detector: Provides electric/magnetic field and doping
        mobility: Mobility model
        carrier_type: Carrier being propagated
        magnetic_field: Include the Hall correction

    Returns:
        Function (time, position) -> velocity [cm/s]
    """
    if not magnetic_field:
        def velocity(time: float, position: np.ndarray) -> np.ndarray:
            efield = detector.get_electric_field(position)
            doping = detector.get_doping_concentration(position)
            return drift_velocity(carrier_type, mobility(carrier_type, float(np.linalg.norm(efield)), doping),
                                  efield)
        return velocity

    sign = float(carrier_type.sign)
    hall = hall_factor(carrier_type)

    def velocity_with_b(time: float, position: np.ndarray) -> np.ndarray:
        efield = detector.get_electric_field(position)
        bfield = detector.get_magnetic_field(position)
        doping = detector.get_doping_concentration(position)
        mob = mobility(carrier_type, float(np.linalg.norm(efield)), doping)
        return hall_velocity(sign, mob, hall, efield, bfield)

    return velocity_with_b
