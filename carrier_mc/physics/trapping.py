"""
Charge carrier trapping and detrapping.

Trapping is tested once per step: the group is captured if the uniform draw
falls below 1 - exp(-dt / τ_eff). A captured group is then released after a
delay sampled from the detrapping model; if release would happen after the
integration window it stays trapped.

Effective trapping times for irradiated silicon scale with the fluence Φ
[1 MeV neq/cm^2] as 1/τ_eff = β(T) Φ.

Trapping models:
    none, constant, ljubljana, dortmund, cmstracker

Detrapping models:
    none       never released (infinite delay)
    constant   exponential release with fixed mean detrapping time

References:
    - Kramberger et al., NIM A 481 (2002) 297-305 (Ljubljana)
    - Krasel et al., IEEE Trans. Nucl. Sci. 51 (2004) 3055-3062 (Dortmund)
    - Swartz et al., CMS tracker simulation (CMSTracker)
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict

from carrier_mc.core.carrier import CarrierType
from carrier_mc.core.config import PropagationConfig
from carrier_mc.core.exceptions import InvalidModelError, InvalidValueError, ModelError

logger = logging.getLogger(__name__)


# ============================================================================
# Trapping
# ============================================================================

@dataclass(frozen=True)
class NoTrapping:
    def __call__(self, carrier_type: CarrierType, probability: float, timestep: float,
                 efield_mag: float) -> bool:
        return False


@dataclass(frozen=True)
class EffectiveTrapping:
    """Trapping with fixed effective trapping times per carrier type [s]."""
    electron_trapping_time: float
    hole_trapping_time: float

    def trapping_time(self, carrier_type: CarrierType) -> float:
        if carrier_type is CarrierType.ELECTRON:
            return self.electron_trapping_time
        return self.hole_trapping_time

    def __call__(self, carrier_type: CarrierType, probability: float, timestep: float,
                 efield_mag: float) -> bool:
        return probability < (1.0 - math.exp(-timestep / self.trapping_time(carrier_type)))


def _fluence_trapping(beta_electron: float, beta_hole: float, fluence: float) -> EffectiveTrapping:
    """β in [cm^2/s], fluence in [neq/cm^2]."""
    if fluence <= 0:
        raise InvalidValueError('fluence', 'must be positive for fluence-dependent trapping')
    return EffectiveTrapping(1.0 / (beta_electron * fluence), 1.0 / (beta_hole * fluence))


def _make_none(config: PropagationConfig) -> NoTrapping:
    logger.info("No charge carrier trapping model chosen, no trapping simulated")
    return NoTrapping()


def _positive_times(config: PropagationConfig, prefix: str):
    """Electron and hole times for `prefix`, each required to be positive."""
    times = []
    for key in (prefix + '_electron', prefix + '_hole'):
        value = config.require(key)
        if value <= 0:
            raise InvalidValueError(key, 'must be positive')
        times.append(value)
    return times


def _make_constant(config: PropagationConfig) -> EffectiveTrapping:
    return EffectiveTrapping(*_positive_times(config, 'trapping_time'))


def _make_ljubljana(config: PropagationConfig) -> EffectiveTrapping:
    # β(T) = β(T0) (T/T0)^κ, T0 = 263 K
    scale = config.temperature / 263.0
    beta_electron = 5.6e-16 * scale ** -0.86 / 1e-9
    beta_hole = 7.7e-16 * scale ** -1.52 / 1e-9
    return _fluence_trapping(beta_electron, beta_hole, config.require('fluence'))


def _make_dortmund(config: PropagationConfig) -> EffectiveTrapping:
    return _fluence_trapping(5.13e-16 / 1e-9, 5.04e-16 / 1e-9, config.require('fluence'))


def _make_cmstracker(config: PropagationConfig) -> EffectiveTrapping:
    # 1/τ = β Φ + 1/τ0, offsets in [1/ns]
    fluence = config.require('fluence')
    if fluence <= 0:
        raise InvalidValueError('fluence', 'must be positive for fluence-dependent trapping')
    rate_electron = (1.71e-16 * fluence + 0.114) / 1e-9
    rate_hole = (2.79e-16 * fluence + 0.093) / 1e-9
    return EffectiveTrapping(1.0 / rate_electron, 1.0 / rate_hole)


TRAPPING_MODELS: Dict[str, Callable] = {
    'none': _make_none,
    'constant': _make_constant,
    'ljubljana': _make_ljubljana,
    'kramberger': _make_ljubljana,
    'dortmund': _make_dortmund,
    'krasel': _make_dortmund,
    'cmstracker': _make_cmstracker,
}


class Trapping:
    """
    Trapping model selected by name.

    Usage:
        trapping = Trapping(config)
        if trapping(carrier_type, rng.uniform(), timestep, efield_mag):
            ...
    """

    def __init__(self, config: PropagationConfig):
        self.name = config.trapping_model
        try:
            if self.name not in TRAPPING_MODELS:
                raise InvalidModelError(self.name, TRAPPING_MODELS.keys())
            self.model = TRAPPING_MODELS[self.name](config)
        except ModelError as e:
            raise InvalidValueError('trapping_model', str(e)) from e
        logger.info("Selected trapping model \"%s\"", self.name)

    def __call__(self, carrier_type: CarrierType, probability: float, timestep: float,
                 efield_mag: float) -> bool:
        return self.model(carrier_type, probability, timestep, efield_mag)

    def __repr__(self) -> str:
        return f"Trapping({self.name!r})"


# ============================================================================
# Detrapping
# ============================================================================

@dataclass(frozen=True)
class NoDetrapping:
    def __call__(self, carrier_type: CarrierType, probability: float, efield_mag: float) -> float:
        return math.inf


@dataclass(frozen=True)
class ConstantDetrapping:
    """Exponentially distributed release time with mean τ_d [s]."""
    electron_detrapping_time: float
    hole_detrapping_time: float

    def __call__(self, carrier_type: CarrierType, probability: float, efield_mag: float) -> float:
        tau = self.electron_detrapping_time if carrier_type is CarrierType.ELECTRON else self.hole_detrapping_time
        return -math.log(1.0 - probability) * tau


def _make_no_detrapping(config: PropagationConfig) -> NoDetrapping:
    logger.info("No charge carrier detrapping model chosen, no detrapping simulated")
    return NoDetrapping()


def _make_constant_detrapping(config: PropagationConfig) -> ConstantDetrapping:
    return ConstantDetrapping(*_positive_times(config, 'detrapping_time'))


DETRAPPING_MODELS: Dict[str, Callable] = {
    'none': _make_no_detrapping,
    'constant': _make_constant_detrapping,
}


class Detrapping:
    """Detrapping model selected by name; returns the release delay in [s]."""

    def __init__(self, config: PropagationConfig):
        self.name = config.detrapping_model
        try:
            if self.name not in DETRAPPING_MODELS:
                raise InvalidModelError(self.name, DETRAPPING_MODELS.keys())
            self.model = DETRAPPING_MODELS[self.name](config)
        except ModelError as e:
            raise InvalidValueError('detrapping_model', str(e)) from e
        logger.info("Selected detrapping model \"%s\"", self.name)

    def __call__(self, carrier_type: CarrierType, probability: float, efield_mag: float) -> float:
        return self.model(carrier_type, probability, efield_mag)

    def __repr__(self) -> str:
        return f"Detrapping({self.name!r})"
