"""
Run-wide propagation statistics.

Statistics are observation only; they never feed back into propagation.
Each event fills its own partial; partials from events or worker processes
are merged into the run total. Updates of a shared instance are guarded by a
lock so threads may report concurrently.
"""

import logging
import threading
from dataclasses import dataclass, field, fields

from carrier_mc.core import units
from carrier_mc.core.carrier import CarrierState

logger = logging.getLogger(__name__)


@dataclass
class PropagationStatistics:
    """
    Counters accumulated over events.

    Charge counts are numbers of carriers before gain; total_time is the
    charge-weighted transport time [s].
    """
    total_deposits: int = 0
    skipped_deposits: int = 0
    deposits_exceeding_max_groups: int = 0
    charge_groups: int = 0
    integration_steps: int = 0
    propagated_charges: int = 0
    recombined_charges: int = 0
    trapped_charges: int = 0
    total_time: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def _counters(self):
        return [f.name for f in fields(self) if not f.name.startswith('_')]

    def record_group(self, charge: int, time: float, state: CarrierState, steps: int):
        """Account for one propagated charge group."""
        with self._lock:
            self.charge_groups += 1
            self.integration_steps += steps
            self.propagated_charges += charge
            self.total_time += charge * time
            if state is CarrierState.RECOMBINED:
                self.recombined_charges += charge
            elif state is CarrierState.TRAPPED:
                self.trapped_charges += charge

    def record_deposit(self, increased_group_size: bool = False):
        with self._lock:
            self.total_deposits += 1
            if increased_group_size:
                self.deposits_exceeding_max_groups += 1

    def record_skipped(self):
        with self._lock:
            self.skipped_deposits += 1

    def merge(self, other: 'PropagationStatistics') -> 'PropagationStatistics':
        """Add the counters of another partial into this one."""
        with self._lock:
            for name in self._counters():
                setattr(self, name, getattr(self, name) + getattr(other, name))
        return self

    def reset(self):
        with self._lock:
            for name in self._counters():
                setattr(self, name, type(getattr(self, name))())

    @property
    def average_time(self) -> float:
        """Charge-weighted average transport time [s]."""
        return self.total_time / max(1, self.propagated_charges)

    @property
    def recombined_fraction(self) -> float:
        return self.recombined_charges / max(1, self.propagated_charges)

    @property
    def trapped_fraction(self) -> float:
        return self.trapped_charges / max(1, self.propagated_charges)

    def as_dict(self) -> dict:
        result = {name: getattr(self, name) for name in self._counters()}
        result['average_time'] = self.average_time
        return result

    def report(self, charge_per_step: int, max_charge_groups: int):
        """Log the run summary."""
        logger.info("Propagated total of %d charges in %d groups (%d integration steps) "
                    "in average time of %s",
                    self.propagated_charges, self.charge_groups, self.integration_steps,
                    units.display(self.average_time, 'ns'))
        logger.info("Recombined %d charges, trapped %d charges during transport",
                    self.recombined_charges, self.trapped_charges)
        if self.skipped_deposits:
            logger.info("Skipped %d deposits outside the integration time", self.skipped_deposits)
        exceeding = self.deposits_exceeding_max_groups * 100.0 / max(1, self.total_deposits)
        logger.info("%.2f%% of deposits have charge exceeding the %d charge groups allowed, "
                    "with a charge_per_step value of %d.", exceeding, max_charge_groups, charge_per_step)

    def __getstate__(self):
        state = self.__dict__.copy()
        del state['_lock']
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self._lock = threading.Lock()
