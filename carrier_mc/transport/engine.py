"""
Charge carrier propagation engine.

Integrates:
    - Drift in electric (and magnetic) fields via adaptive Runge-Kutta
    - Thermal diffusion after every step
    - Recombination, trapping and detrapping
    - Impact ionization gain
    - Interception with the sensor surface

Each deposit is split into charge groups; every group is propagated as one
trajectory until it leaves the sensor, recombines, gets trapped or the
integration time is used up. Events are independent and can be processed in
parallel; each event draws from its own random generator.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from carrier_mc.core import units
from carrier_mc.core.carrier import (
    CarrierState, CarrierType, DepositedCharge, PropagatedCharge, PropagationResult
)
from carrier_mc.core.config import PropagationConfig
from carrier_mc.core.detector import Detector
from carrier_mc.core.exceptions import MissingDataError
from carrier_mc.physics.diffusion import Diffusion
from carrier_mc.physics.mobility import Mobility
from carrier_mc.physics.multiplication import BREAKDOWN_GAIN, ImpactIonization
from carrier_mc.physics.recombination import Recombination
from carrier_mc.physics.trapping import Detrapping, Trapping
from carrier_mc.transport import runge_kutta as rk
from carrier_mc.transport.batching import charge_groups
from carrier_mc.transport.statistics import PropagationStatistics
from carrier_mc.transport.trajectory import Trajectory, diagnostic_state
from carrier_mc.transport.velocity import make_velocity_function

logger = logging.getLogger(__name__)

# Step size control
SHRINK_FACTOR = 0.75
GROW_FACTOR = 1.5


def round_charge(value: float) -> int:
    """Round half away from zero, charge is never negative."""
    return int(math.floor(value + 0.5))


@dataclass
class EventResult:
    """Output of one event."""
    event_number: int
    propagated_charges: List[PropagatedCharge]
    statistics: PropagationStatistics
    trajectories: Optional[List[Trajectory]] = None

    @property
    def total_charge(self) -> int:
        return sum(charge.charge for charge in self.propagated_charges)


# Global engine instance for each worker process
_worker_engine = None


def _init_worker(config: PropagationConfig, detector: Detector):
    """Initialize worker process with its own engine instance."""
    global _worker_engine
    _worker_engine = PropagationEngine(config, detector)


def _run_event_worker(work_item) -> Tuple[EventResult, Sequence[DepositedCharge]]:
    """
    Worker function for parallel event processing.

    The deposits are returned alongside the result so the parent can map the
    back-references of the propagated charges onto its own deposit objects.
    """
    event_number, deposits, seed = work_item
    rng = np.random.default_rng(seed)
    return _worker_engine.run_event(deposits, rng, event_number), deposits


class PropagationEngine:
    """
    Propagation of deposited charge through a sensor.

    Example:
        detector = Detector(BoxSensor((0.1, 0.1, 0.03)), electric_field=ConstantField((0, 0, -1e3)))
        engine = PropagationEngine(PropagationConfig(), detector)
        results = engine.run(events, seed=42)
        engine.finalize()
    """

    def __init__(self, config: PropagationConfig, detector: Detector):
        """
        Initialize propagation engine.

        Parameters:
            config: Propagation configuration
            detector: Sensor model with field and doping providers

        Raises:
            ConfigurationError: unknown or unsuitable models, inconsistent settings
        """
        self.config = config
        self.detector = detector
        self.model = detector.model

        if not detector.has_electric_field:
            logger.warning("This detector does not have an electric field.")
        else:
            self._check_collected_carriers()

        # Magnetic field
        self.has_magnetic_field = detector.has_magnetic_field
        if self.has_magnetic_field:
            if config.ignore_magnetic_field:
                self.has_magnetic_field = False
                logger.warning("A magnetic field is switched on, but is set to be ignored for this module.")
            else:
                logger.debug("This detector sees a magnetic field.")

        # Physics models
        self.mobility = Mobility(config, detector.has_doping_profile)
        self.recombination = Recombination(config, detector.has_doping_profile)
        self.multiplication = ImpactIonization(config)
        if self.multiplication.enabled and config.timestep_max > units.get(1, 'ps'):
            logger.warning("Charge multiplication enabled with maximum timestep larger than 1ps. "
                           "This might lead to unphysical gain values.")
        self.trapping = Trapping(config)
        self.detrapping = Detrapping(config)
        self.diffusion = Diffusion(self.mobility, config.temperature)

        self.velocity = {
            carrier_type: make_velocity_function(detector, self.mobility, carrier_type, self.has_magnetic_field)
            for carrier_type in CarrierType
        }

        # Collection face used to slow down close to the implants
        self.sensor_top_z = float(self.model.sensor_center[2] + self.model.sensor_size[2] / 2.0)

        # Per-event trajectories are ordered and shared over the event
        self.allow_parallel = not config.output_linegraphs
        if not self.allow_parallel:
            logger.warning("Per-event line graphs requested, disabling parallel event processing")

        self.statistics = PropagationStatistics()

    def _check_collected_carriers(self):
        """Compare the field direction close to the implants with the propagated carriers."""
        center = self.model.sensor_center
        probe = np.array([center[0], center[1], center[2] + self.model.sensor_size[2] / 2.01])
        efield_z = self.detector.get_electric_field(probe)[2]
        if efield_z == 0.0:
            return
        if np.signbit(efield_z) and not self.config.propagate_electrons:
            logger.warning("Electric field indicates electron collection at implants, "
                           "but electrons are not propagated!")
        if not np.signbit(efield_z) and not self.config.propagate_holes:
            logger.warning("Electric field indicates hole collection at implants, "
                           "but holes are not propagated!")

    def _propagates(self, carrier_type: CarrierType) -> bool:
        if carrier_type is CarrierType.ELECTRON:
            return self.config.propagate_electrons
        return self.config.propagate_holes

    def _adapt_timestep(self, timestep: float, position: np.ndarray, step: rk.Step) -> float:
        """New timestep from the step error and the distance to the collection face."""
        config = self.config
        uncertainty = float(np.linalg.norm(step.error))

        # Lower timestep when reaching the sensor edge
        if abs(self.sensor_top_z - position[2]) < 2.0 * step.value[2]:
            timestep *= SHRINK_FACTOR
        elif uncertainty > config.spatial_precision:
            timestep *= SHRINK_FACTOR
        elif 2.0 * uncertainty < config.spatial_precision:
            timestep *= GROW_FACTOR

        return min(max(timestep, config.timestep_min), config.timestep_max)

    def propagate(self, position: np.ndarray, carrier_type: CarrierType, initial_time: float,
                  rng: np.random.Generator, trajectory: Optional[Trajectory] = None) -> PropagationResult:
        """
        Propagate one charge group from its deposition point.

        Per step: Runge-Kutta drift, diffusion, sensor containment,
        recombination, trapping/detrapping, multiplication and step size
        adaptation. Random numbers are drawn in exactly this order.

        Parameters:
            position: Start position in local coordinates [cm]
            carrier_type: Electron or hole
            initial_time: Local time of the deposit [s]
            rng: Random generator of the current event
            trajectory: Optional diagnostic recorder

        Returns:
            PropagationResult with final position, transport time, gain,
            terminal state and number of integration steps
        """
        config = self.config
        carrier_type = CarrierType.parse(carrier_type)
        velocity = self.velocity[carrier_type]
        integration_time = config.integration_time

        state = rk.initial_state(position, config.timestep_start)
        efield_mag = float(np.linalg.norm(self.detector.get_electric_field(state.position)))
        last_position = state.position
        gain = 1.0
        steps = 0
        carrier_state = CarrierState.MOTION

        while carrier_state is CarrierState.MOTION and (initial_time + state.time) < integration_time:
            if trajectory is not None:
                trajectory.sample(state.position, state.time, config.output_plots_step)

            # Save previous position and field
            last_position = state.position
            last_efield_mag = efield_mag

            # Execute a Runge-Kutta step
            state, step = rk.rk_step(velocity, state)
            steps += 1
            timestep = state.timestep

            # Field at the new position, zero if undefined
            efield_mag = float(np.linalg.norm(self.detector.get_electric_field(state.position)))
            doping = self.detector.get_doping_concentration(state.position)

            # Apply diffusion step
            position = state.position + self.diffusion(carrier_type, efield_mag, doping, timestep, rng)
            state = state.with_position(position)

            # Check if we are still in the sensor
            if not self.model.is_within_sensor(position):
                carrier_state = CarrierState.HALTED

            # Check if the charge carrier is still alive
            if self.recombination(carrier_type, self.detector.get_doping_concentration(position),
                                  rng.uniform(), timestep):
                carrier_state = CarrierState.RECOMBINED

            # Check if the charge carrier has been trapped
            if self.trapping(carrier_type, rng.uniform(), timestep, efield_mag):
                detrap_time = self.detrapping(carrier_type, rng.uniform(), efield_mag)
                if (initial_time + state.time + detrap_time) < integration_time:
                    logger.debug("De-trapping charge carrier after %s", units.display(detrap_time, 'ns'))
                    state = rk.advance_time(state, detrap_time)
                else:
                    carrier_state = CarrierState.TRAPPED

            # Multiplication, deterministic from the averaged field and the step length
            step_length = float(np.linalg.norm(step.value))
            gain *= self.multiplication(carrier_type, (efield_mag + last_efield_mag) / 2.0, step_length)
            if gain > BREAKDOWN_GAIN:
                logger.warning("Detected gain of %.2f, local electric field of %s, diode seems to be in breakdown",
                               gain, units.display(efield_mag, 'kV/cm'))

            # Adapt step size to match target precision
            state = state.with_timestep(self._adapt_timestep(timestep, position, step))

        time = state.time
        final_position = state.position
        if carrier_state is CarrierState.HALTED:
            final_position = self.model.get_sensor_intercept(last_position, state.position)
        elif carrier_state is CarrierState.MOTION:
            # Integration window closed before a physical end state
            carrier_state = CarrierState.UNKNOWN

        if trajectory is not None:
            trajectory.state = diagnostic_state(carrier_state, time, integration_time, last_position,
                                                float(self.model.sensor_center[2]),
                                                float(self.model.sensor_size[2]))

        if carrier_state is CarrierState.RECOMBINED:
            logger.debug("Charge carrier recombined after %s", units.display(time, 'ns'))
        elif carrier_state is CarrierState.TRAPPED:
            logger.debug("Charge carrier trapped after %s at %s", units.display(time, 'ns'), final_position)

        return PropagationResult(np.asarray(final_position, dtype=np.float64), time, gain, carrier_state, steps)

    def run_event(self, deposits: Optional[Iterable[DepositedCharge]], rng: np.random.Generator,
                  event_number: int = 0) -> EventResult:
        """
        Propagate all deposits of one event.

        Parameters:
            deposits: Deposited charges of this event
            rng: Random generator owned by this event
            event_number: Event identifier for logging

        Returns:
            EventResult with one PropagatedCharge per charge group
        """
        if deposits is None:
            raise MissingDataError(f"No deposited charges provided for event {event_number}")

        config = self.config
        statistics = PropagationStatistics()
        propagated_charges = []
        trajectories = [] if config.output_linegraphs else None

        for deposit in deposits:
            if not self._propagates(deposit.carrier_type):
                logger.debug("Skipping charge carriers (%s) on %s", deposit.carrier_type, deposit.local_position)
                continue

            # Only process if within requested integration time
            if deposit.local_time > config.integration_time:
                logger.debug("Skipping charge carriers deposited beyond integration time: %s global / %s local",
                             units.display(deposit.global_time, 'ns'), units.display(deposit.local_time, 'ns'))
                statistics.record_skipped()
                continue

            increased, groups = charge_groups(deposit, config.charge_per_step, config.max_charge_groups)
            statistics.record_deposit(increased)

            for group in groups:
                trajectory = None
                if trajectories is not None:
                    trajectory = Trajectory(deposit.global_time, group.size, deposit.carrier_type)
                    trajectories.append(trajectory)

                result = self.propagate(deposit.local_position, deposit.carrier_type,
                                        deposit.local_time, rng, trajectory)

                logger.debug("Propagated %d to %s in %s time, gain %.3f, final state: %s",
                             group.size, result.position, units.display(result.time, 'ns'),
                             result.gain, result.state)

                propagated_charges.append(PropagatedCharge(
                    local_position=result.position,
                    global_position=self.detector.get_global_position(result.position),
                    carrier_type=deposit.carrier_type,
                    charge=round_charge(group.size * result.gain),
                    local_time=deposit.local_time + result.time,
                    global_time=deposit.global_time + result.time,
                    state=result.state,
                    deposit=deposit,
                    gain=result.gain,
                ))
                statistics.record_group(group.size, result.time, result.state, result.steps)

        logger.info("Event %d: propagated %d charges in %d groups in average time of %s, "
                    "recombined %d, trapped %d",
                    event_number, statistics.propagated_charges, statistics.charge_groups,
                    units.display(statistics.average_time, 'ns'),
                    statistics.recombined_charges, statistics.trapped_charges)

        self.statistics.merge(statistics)
        return EventResult(event_number, propagated_charges, statistics, trajectories)

    def run(self, events: Sequence[Sequence[DepositedCharge]], seed: Optional[int] = None,
            n_processes: Optional[int] = None, progress: bool = True) -> List[EventResult]:
        """
        Propagate a sequence of events.

        Every event gets its own generator spawned from `seed` in event
        order, so serial and parallel runs give identical results.

        Parameters:
            events: Deposits per event
            seed: Seed of the run
            n_processes: Worker processes (None or 1: serial)
            progress: Show a progress bar

        Returns:
            List of EventResult in event order
        """
        import multiprocessing as mp

        self.statistics.reset()
        events = list(events)
        seeds = np.random.SeedSequence(seed).spawn(len(events))

        parallel = n_processes is not None and n_processes > 1 and len(events) > 1
        if parallel and not self.allow_parallel:
            logger.warning("Trajectory recording enabled, processing %d events serially", len(events))
            parallel = False

        if not parallel:
            return [
                self.run_event(deposits, np.random.default_rng(event_seed), event_number)
                for event_number, (deposits, event_seed) in tqdm(
                    enumerate(zip(events, seeds)), total=len(events), disable=not progress, desc='Events')
            ]

        work_items = [(event_number, list(deposits), event_seed)
                      for event_number, (deposits, event_seed) in enumerate(zip(events, seeds))]

        results = []
        with mp.Pool(n_processes, initializer=_init_worker,
                     initargs=(self.config, self.detector)) as pool:
            for (result, worker_deposits), deposits in tqdm(
                    zip(pool.imap(_run_event_worker, work_items), events),
                    total=len(events), disable=not progress, desc='Events'):
                self.statistics.merge(result.statistics)
                results.append(_relink_deposits(result, worker_deposits, deposits))
        return results

    def finalize(self) -> PropagationStatistics:
        """Report the run statistics."""
        self.statistics.report(self.config.charge_per_step, self.config.max_charge_groups)
        return self.statistics


def _relink_deposits(result: EventResult, worker_deposits: Sequence[DepositedCharge],
                     deposits: Sequence[DepositedCharge]) -> EventResult:
    """Point propagated charges from a worker back to the caller's deposits."""
    mapping = {id(copy): original for copy, original in zip(worker_deposits, deposits)}
    result.propagated_charges = [
        PropagatedCharge(
            local_position=charge.local_position,
            global_position=charge.global_position,
            carrier_type=charge.carrier_type,
            charge=charge.charge,
            local_time=charge.local_time,
            global_time=charge.global_time,
            state=charge.state,
            deposit=mapping.get(id(charge.deposit), charge.deposit),
            gain=charge.gain,
        )
        for charge in result.propagated_charges
    ]
    return result
