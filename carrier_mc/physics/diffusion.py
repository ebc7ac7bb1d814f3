"""
Thermal diffusion of drifting charge carriers.

After every accepted integration step the carrier group is displaced by a
Gaussian random offset. The width follows from the Einstein relation:

    D = (k_B T / q) · μ(E, N)       [cm^2/s]
    σ = sqrt(2 D dt)                [cm]

independently in x, y and z.
"""

import numpy as np
from scipy import constants

from carrier_mc.core.carrier import CarrierType
from carrier_mc.physics.mobility import Mobility

# Boltzmann constant [eV/K], k_B T in eV equals the thermal voltage in V
K_B_EV = constants.physical_constants['Boltzmann constant in eV/K'][0]


def thermal_voltage(temperature: float) -> float:
    """k_B T / q in [V]."""
    return K_B_EV * temperature


class Diffusion:
    """
    Gaussian diffusion offsets for one carrier type.

    Usage:
        diffusion = Diffusion(mobility, temperature=293.15)
        position += diffusion(CarrierType.ELECTRON, efield_mag, doping, timestep, rng)
    """

    def __init__(self, mobility: Mobility, temperature: float):
        self.mobility = mobility
        self.boltzmann_kT = thermal_voltage(temperature)

    def diffusion_constant(self, carrier_type: CarrierType, efield_mag: float, doping: float) -> float:
        return self.boltzmann_kT * self.mobility(carrier_type, efield_mag, doping)

    def sigma(self, carrier_type: CarrierType, efield_mag: float, doping: float, timestep: float) -> float:
        return float(np.sqrt(2.0 * self.diffusion_constant(carrier_type, efield_mag, doping) * timestep))

    def __call__(self, carrier_type: CarrierType, efield_mag: float, doping: float,
                 timestep: float, rng: np.random.Generator) -> np.ndarray:
        """
        Draw one diffusion offset.

        Parameters:
            carrier_type: Electron or hole
            efield_mag: Electric field magnitude at the carrier [V/cm]
            doping: Effective doping at the carrier [1/cm^3]
            timestep: Duration of the step [s]
            rng: Random generator of the current event

        Returns:
            Offset (dx, dy, dz) [cm]
        """
        sigma = self.sigma(carrier_type, efield_mag, doping, timestep)
        return rng.normal(0.0, sigma, 3)
