"""
Impact ionization (charge multiplication).

The gain of a step of length L through a field E is deterministic:

    gain = exp(α(E) · L)   for E > multiplication_threshold
    gain = 1               otherwise

with α the impact ionization coefficient [1/cm] of the carrier type.

Available models:
    none           no multiplication
    massey         Massey et al.
    overstraeten   van Overstraeten - de Man (alias 'vanoverstraeten')
    okuto          Okuto - Crowell

References:
    - Massey et al., IEEE Trans. Electron Devices 53 (2006) 2328-2334
    - van Overstraeten, de Man, Solid-State Electronics 13 (1970) 583-608
    - Okuto, Crowell, Solid-State Electronics 18 (1975) 161-168
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

import numba
import numpy as np
from scipy import constants

from carrier_mc.core.carrier import CarrierType
from carrier_mc.core.config import PropagationConfig
from carrier_mc.core.exceptions import InvalidModelError, InvalidValueError, ModelError

logger = logging.getLogger(__name__)

# Boltzmann constant [eV/K]
K_B_EV = constants.physical_constants['Boltzmann constant in eV/K'][0]

# Gain above which a warning about breakdown is issued
BREAKDOWN_GAIN = 20.0


@numba.njit(fastmath=True, cache=True)
def massey_alpha(efield_mag: float, a: float, b: float) -> float:
    """α = A exp(-B / E)"""
    return a * np.exp(-b / efield_mag)


@numba.njit(fastmath=True, cache=True)
def overstraeten_alpha(efield_mag: float, gamma: float, a: float, b: float) -> float:
    """α = γ a exp(-γ b / E)"""
    return gamma * a * np.exp(-gamma * b / efield_mag)


@numba.njit(fastmath=True, cache=True)
def okuto_alpha(efield_mag: float, a: float, b: float) -> float:
    """α = a E exp(-(b / E)^2), a and b already temperature corrected."""
    ratio = b / efield_mag
    return a * efield_mag * np.exp(-ratio * ratio)


@dataclass(frozen=True)
class NoMultiplication:
    def __call__(self, carrier_type: CarrierType, efield_mag: float, step_length: float) -> float:
        return 1.0


@dataclass(frozen=True)
class Massey:
    """Parameters per carrier as (A [1/cm], B [V/cm])."""
    threshold: float
    electron: Tuple[float, float]
    hole: Tuple[float, float]

    @classmethod
    def from_config(cls, config: PropagationConfig) -> 'Massey':
        T = config.temperature
        return cls(
            threshold=config.multiplication_threshold,
            electron=(4.43e5, 9.66e5 + 4.99e2 * T),
            hole=(1.13e6, 1.71e6 + 1.09e3 * T),
        )

    def alpha(self, carrier_type: CarrierType, efield_mag: float) -> float:
        a, b = self.electron if carrier_type is CarrierType.ELECTRON else self.hole
        return massey_alpha(efield_mag, a, b)

    def __call__(self, carrier_type: CarrierType, efield_mag: float, step_length: float) -> float:
        if efield_mag <= self.threshold:
            return 1.0
        return float(np.exp(step_length * self.alpha(carrier_type, efield_mag)))


@dataclass(frozen=True)
class VanOverstraetenDeMan:
    """
    Electrons use one (a, b) pair, holes switch parameter set at 400 kV/cm.
    The optical phonon factor γ corrects for temperature.
    """
    threshold: float
    gamma: float
    electron: Tuple[float, float] = (7.03e5, 1.231e6)
    hole_low: Tuple[float, float] = (1.582e6, 2.036e6)
    hole_high: Tuple[float, float] = (6.71e5, 1.693e6)
    hole_switch: float = 4.0e5

    @classmethod
    def from_config(cls, config: PropagationConfig) -> 'VanOverstraetenDeMan':
        hbar_omega = 0.063  # eV
        gamma = (np.tanh(hbar_omega / (2.0 * K_B_EV * 300.0))
                 / np.tanh(hbar_omega / (2.0 * K_B_EV * config.temperature)))
        return cls(threshold=config.multiplication_threshold, gamma=float(gamma))

    def alpha(self, carrier_type: CarrierType, efield_mag: float) -> float:
        if carrier_type is CarrierType.ELECTRON:
            a, b = self.electron
        elif efield_mag < self.hole_switch:
            a, b = self.hole_low
        else:
            a, b = self.hole_high
        return overstraeten_alpha(efield_mag, self.gamma, a, b)

    def __call__(self, carrier_type: CarrierType, efield_mag: float, step_length: float) -> float:
        if efield_mag <= self.threshold:
            return 1.0
        return float(np.exp(step_length * self.alpha(carrier_type, efield_mag)))


@dataclass(frozen=True)
class OkutoCrowell:
    """Parameters per carrier as (a [1/V], b [V/cm]) after temperature correction."""
    threshold: float
    electron: Tuple[float, float]
    hole: Tuple[float, float]

    @classmethod
    def from_config(cls, config: PropagationConfig) -> 'OkutoCrowell':
        dT = config.temperature - 300.0
        return cls(
            threshold=config.multiplication_threshold,
            electron=(0.426 * (1.0 + 3.05e-4 * dT), 4.81e5 * (1.0 + 6.86e-4 * dT)),
            hole=(0.243 * (1.0 + 5.35e-4 * dT), 6.53e5 * (1.0 + 5.67e-4 * dT)),
        )

    def alpha(self, carrier_type: CarrierType, efield_mag: float) -> float:
        a, b = self.electron if carrier_type is CarrierType.ELECTRON else self.hole
        return okuto_alpha(efield_mag, a, b)

    def __call__(self, carrier_type: CarrierType, efield_mag: float, step_length: float) -> float:
        if efield_mag <= self.threshold:
            return 1.0
        return float(np.exp(step_length * self.alpha(carrier_type, efield_mag)))


def _make_none(config: PropagationConfig) -> NoMultiplication:
    logger.info("No impact ionization model chosen, charge multiplication not simulated")
    return NoMultiplication()


MODELS: Dict[str, Callable] = {
    'none': _make_none,
    'massey': Massey.from_config,
    'overstraeten': VanOverstraetenDeMan.from_config,
    'vanoverstraeten': VanOverstraetenDeMan.from_config,
    'okuto': OkutoCrowell.from_config,
}


class ImpactIonization:
    """
    Multiplication model selected by name.

    Usage:
        multiplication = ImpactIonization(config)
        gain *= multiplication(carrier_type, efield_mag, step_length)
    """

    def __init__(self, config: PropagationConfig):
        self.name = config.multiplication_model
        try:
            if self.name not in MODELS:
                raise InvalidModelError(self.name, MODELS.keys())
            self.model = MODELS[self.name](config)
        except ModelError as e:
            raise InvalidValueError('multiplication_model', str(e)) from e
        logger.info("Selected impact ionization model \"%s\"", self.name)

    @property
    def enabled(self) -> bool:
        return not isinstance(self.model, NoMultiplication)

    def __call__(self, carrier_type: CarrierType, efield_mag: float, step_length: float) -> float:
        return self.model(carrier_type, efield_mag, step_length)

    def __repr__(self) -> str:
        return f"ImpactIonization({self.name!r})"


# ============================================================================
# Example Usage
# ============================================================================

if __name__ == "__main__":
    print("\n" + "="*70)
    print("Impact ionization gain for a 1 um step")
    print("="*70)

    for name in ('massey', 'overstraeten', 'okuto'):
        model = ImpactIonization(PropagationConfig(multiplication_model=name, temperature=300.0))
        print(f"\n{name}:")
        for E in (2e5, 3e5, 4e5, 5e5):
            gain_e = model(CarrierType.ELECTRON, E, 1e-4)
            gain_h = model(CarrierType.HOLE, E, 1e-4)
            print(f"  E = {E/1e3:5.0f} kV/cm: electrons {gain_e:8.4f}, holes {gain_h:8.4f}")
