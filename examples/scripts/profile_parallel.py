#!/usr/bin/env python3
"""
Profile propagation to identify bottlenecks.
"""
import cProfile
import pstats
import time
from io import StringIO

import numpy as np

from carrier_mc.core.carrier import CarrierType, DepositedCharge
from carrier_mc.core.config import PropagationConfig
from carrier_mc.core.detector import BoxSensor, ConstantField, Detector
from carrier_mc.transport.engine import PropagationEngine


def make_engine(**kwargs):
    detector = Detector(BoxSensor((1.0, 1.0, 0.03)), electric_field=ConstantField((0.0, 0.0, -1e4)))
    return PropagationEngine(PropagationConfig(**kwargs), detector)


def make_events(n_events, charge=1000):
    return [[DepositedCharge((0.0, 0.0, 0.0), CarrierType.ELECTRON, charge)] for _ in range(n_events)]


def profile_single_group():
    """Profile single charge group propagation in detail."""
    print("\n" + "="*70)
    print("PROFILING SINGLE GROUP PROPAGATION")
    print("="*70)

    engine = make_engine()
    rng = np.random.default_rng(0)

    # Warm up numba kernels
    engine.propagate(np.zeros(3), CarrierType.ELECTRON, 0.0, rng)

    print("\n1. Single group propagation:")

    profiler = cProfile.Profile()
    profiler.enable()
    start = time.time()

    result = engine.propagate(np.zeros(3), CarrierType.ELECTRON, 0.0, rng)

    elapsed = time.time() - start
    profiler.disable()

    print(f"   Time: {elapsed:.6f}s")
    print(f"   Steps: {result.steps}")
    print(f"   State: {result.state}")

    # Show top time consumers
    print("\n   Top function calls:")
    s = StringIO()
    ps = pstats.Stats(profiler, stream=s).sort_stats('cumulative')
    ps.print_stats(20)
    print(s.getvalue())


def profile_parallel_overhead(n_events=40, n_processes=4):
    """Profile parallel event processing overhead."""
    print("\n" + "="*70)
    print("PROFILING PARALLEL PROPAGATION OVERHEAD")
    print("="*70)

    events = make_events(n_events)

    print(f"\n1. Serial propagation ({n_events} events):")
    engine = make_engine()
    start = time.time()
    engine.run(events, seed=1, progress=False)
    serial_time = time.time() - start
    print(f"   Time: {serial_time:.3f}s")
    print(f"   Steps: {engine.statistics.integration_steps}")

    print(f"\n2. Parallel propagation ({n_events} events, {n_processes} cores):")
    engine2 = make_engine()
    start = time.time()
    engine2.run(events, seed=1, n_processes=n_processes, progress=True)
    parallel_time = time.time() - start

    print(f"\n   Total time: {parallel_time:.3f}s")
    print(f"   Steps: {engine2.statistics.integration_steps}")
    print(f"   Speedup: {serial_time/parallel_time:.2f}x")


def profile_group_size():
    """Runtime against the number of charge groups per deposit."""
    print("\n" + "="*70)
    print("PROFILING CHARGE GROUP SIZE")
    print("="*70)

    events = make_events(5, charge=2000)
    for charge_per_step in (10, 50, 200):
        engine = make_engine(charge_per_step=charge_per_step)
        start = time.time()
        engine.run(events, seed=2, progress=False)
        elapsed = time.time() - start
        print(f"   charge_per_step {charge_per_step:4d}: {engine.statistics.charge_groups:5d} groups, "
              f"{elapsed:.3f}s")


if __name__ == '__main__':
    profile_single_group()
    profile_group_size()
    profile_parallel_overhead()
