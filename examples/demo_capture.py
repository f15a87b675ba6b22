#!/usr/bin/env python3
"""Demo bounded capture against simulated probe boxes."""

import argparse

from probe_daq import (
    Config,
    ParameterBinding,
    ProbeAcquisition,
    SimulatedTransport,
    make_dialect,
    setup_logging,
)


def build_line(noise: float) -> SimulatedTransport:
    """Two boxes, the second one reading slightly out of tolerance."""
    config = Config.create_default("sim://")
    transport = SimulatedTransport(make_dialect(config.protocol))
    transport.add_box(1, values=[0.45, 0.52, 0.61, 0.58], noise=noise, seed=1)
    transport.add_box(2, values=[1.31, 0.95, 0.18, 0.70], noise=noise, seed=2)
    return transport


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Bounded capture demo with simulated boxes")
    parser.add_argument("--count", type=int, default=20, help="Samples per channel")
    parser.add_argument("--noise", type=float, default=0.01, help="Simulated channel noise in mm")
    args = parser.parse_args()

    setup_logging("INFO")

    config = Config.create_default("sim://")
    config.acquisition.inter_tick_delay = 0.01
    config.parameters = [
        ParameterBinding(name="OD_TOP", box=1, channels=[1]),
        ParameterBinding(name="RUNOUT", box=1, channels=[2, 3]),
        ParameterBinding(name="OD_BOTTOM", box=2, channels=[1]),
        ParameterBinding(name="FACE", box=2, channels=[3], lower_limit=0.1, upper_limit=0.3),
    ]

    with ProbeAcquisition(config, transport=build_line(args.noise)) as acq:
        handle = acq.start_bounded(args.count)
        if not handle.wait(timeout=30):
            print("Capture did not complete in time")
        handle.stop()

        print(f"{'Parameter':<12} {'CH':>3} {'Count':>6} {'Mean':>8} {'Spread':>8}  Live")
        for binding in acq.registry:
            cell = acq.live_value(binding.name)
            for channel in binding.channels:
                summary = acq.summary(binding.name, channel)
                print(f"{binding.name:<12} {channel:>3} {summary.count:>6} {summary.mean:>8.3f} "
                      f"{summary.spread:>8.3f}  {cell.status.value if cell.status else '-'}")


if __name__ == "__main__":
    main()
