"""Transport module: Runge-Kutta integration and the propagation engine."""

from carrier_mc.transport.engine import EventResult, PropagationEngine
from carrier_mc.transport.statistics import PropagationStatistics

__all__ = ["EventResult", "PropagationEngine", "PropagationStatistics"]
