"""
CARRIER_MC: Monte Carlo Charge Carrier Propagation

Propagation of charge carriers deposited in a semiconductor sensor through
its electric and magnetic fields, with diffusion, recombination, trapping
and impact ionization.

Modules:
    core: Units, carrier records, configuration, detector model
    physics: Mobility, recombination, trapping, multiplication, diffusion
    transport: Runge-Kutta integration and the propagation engine
"""

__version__ = "0.1.0"

from carrier_mc.core.carrier import CarrierState, CarrierType, DepositedCharge, PropagatedCharge
from carrier_mc.core.config import PropagationConfig, load_config
from carrier_mc.core.detector import BoxSensor, Detector
from carrier_mc.transport.engine import EventResult, PropagationEngine

__all__ = [
    "CarrierState",
    "CarrierType",
    "DepositedCharge",
    "PropagatedCharge",
    "PropagationConfig",
    "load_config",
    "BoxSensor",
    "Detector",
    "EventResult",
    "PropagationEngine",
]
