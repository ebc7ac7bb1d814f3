"""Core module: Units, carrier records, configuration and detector model."""

from carrier_mc.core.carrier import CarrierState, CarrierType, DepositedCharge, PropagatedCharge
from carrier_mc.core.config import PropagationConfig, load_config
from carrier_mc.core.detector import BoxSensor, ConstantDoping, ConstantField, Detector, LinearField
from carrier_mc.core.exceptions import ConfigurationError, InvalidValueError, MissingDataError

__all__ = [
    "CarrierState",
    "CarrierType",
    "DepositedCharge",
    "PropagatedCharge",
    "PropagationConfig",
    "load_config",
    "BoxSensor",
    "ConstantDoping",
    "ConstantField",
    "Detector",
    "LinearField",
    "ConfigurationError",
    "InvalidValueError",
    "MissingDataError",
]
