#!/usr/bin/env python3
"""Live probe monitoring and bounded sample capture from the console."""

import argparse
import csv
import signal
import sys
import time
from typing import List, Optional

from ..core.config import Config, DialectName
from ..core.exceptions import ProbeDAQError
from ..core.logging import setup_logging_from_config
from ..core.models import ParameterBinding
from ..data_acquisition.engine import ProbeAcquisition, SessionHandle
from ..data_acquisition.simulated import SimulatedTransport
from ..data_acquisition.transport import Transport
from ..protocols.dialects import make_dialect


def parse_binding(text: str) -> ParameterBinding:
    """
    Parse a NAME:BOX:CHANNELS parameter binding.

    Example: "OD_1:3:2" or "RUNOUT:5:1,2".
    """
    parts = text.split(":")
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"Expected NAME:BOX:CHANNELS, got '{text}'")
    name, box, channels = parts
    try:
        return ParameterBinding(name=name, box=int(box), channels=channels)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid binding '{text}': {e}") from e


def simulated_transport(config: Config, noise: float = 0.002) -> SimulatedTransport:
    """Simulated line with one box per box referenced by the configuration."""
    transport = SimulatedTransport(make_dialect(config.protocol))
    for seed, box in enumerate(sorted({p.box for p in config.parameters})):
        transport.add_box(box, values=[0.5, 0.6, 0.7, 0.8], noise=noise, seed=seed)
    return transport


class LiveMonitor:
    """Console front-end of the acquisition engine."""

    def __init__(self, config: Config, transport: Optional[Transport] = None, refresh: float = 1.0):
        """
        Initialize live monitor.

        Args:
            config: Configuration object
            transport: Transport override, e.g. a simulated line
            refresh: Seconds between table refreshes
        """
        self.config = config
        self.refresh = refresh
        self.acquisition = ProbeAcquisition(config, transport=transport)
        self.handle: Optional[SessionHandle] = None
        self.running = False

        # Setup signal handlers for graceful shutdown
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        print(f"\nReceived signal {signum}. Shutting down gracefully...")
        self.running = False

    def run(self, target_count: Optional[int] = None, duration: Optional[float] = None) -> bool:
        """
        Run a session until stopped, the duration expires or the capture completes.

        Returns:
            True if a bounded capture completed
        """
        print(f"Port: {self.config.serial.port}")
        print(f"Dialect: {self.config.protocol.dialect.value}")
        print(f"Boxes: {', '.join(str(b) for b in self.acquisition.registry.all_boxes())}")
        print("-" * 50)

        if target_count:
            self.handle = self.acquisition.start_bounded(target_count)
        else:
            self.handle = self.acquisition.start_continuous()

        self.running = True
        start = time.time()
        try:
            while self.running and self.handle.is_running:
                self.handle.wait(self.refresh)
                self.print_table()
                if duration is not None and time.time() - start >= duration:
                    break
        finally:
            self.handle.stop()

        status = self.handle.status()
        print(f"Ticks: {status.ticks}, errors: {status.errors_count}, uptime: {status.uptime:.1f}s")
        if target_count and not status.complete:
            print("Capture incomplete:")
            for label, count in status.progress.items():
                if count < target_count:
                    print(f"  {label}: {count}/{target_count}")
        return status.complete

    def print_table(self) -> None:
        """Print the live value of every parameter."""
        status = self.handle.status()
        for binding in self.acquisition.registry:
            cell = self.acquisition.live_value(binding.name)
            state = cell.status.value if cell.status else "-"
            line = f"{binding.name:<16} box {binding.box:03d}  {state:<8} {cell.text}"
            if status.target_count:
                counts = [status.progress.get(f"{binding.name}/CH{ch}", 0) for ch in binding.channels]
                line += f"  [{'/'.join(str(c) for c in counts)} of {status.target_count}]"
            print(line)
        print("-" * 50)

    def save_samples(self, path: str) -> int:
        """
        Write the accepted samples to a CSV file.

        Returns:
            Number of rows written
        """
        rows = 0
        with open(path, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(['parameter', 'box', 'channel', 'index', 'value_mm'])
            for binding in self.acquisition.registry:
                for channel in binding.channels:
                    for index, value in enumerate(self.acquisition.samples(binding.name, channel)):
                        writer.writerow([binding.name, binding.box, channel, index, f"{value:.4f}"])
                        rows += 1
        return rows


def build_config(args) -> Config:
    """Create the configuration from a file and command line overrides."""
    if args.config:
        config = Config.from_file(args.config)
        if args.port:
            config.serial.port = args.port
    else:
        config = Config.create_default(args.port or "sim://")

    if args.baudrate:
        config.serial.baudrate = args.baudrate
    if args.dialect:
        config.protocol.dialect = DialectName(args.dialect)
    if args.box_timeout is not None:
        config.acquisition.box_timeout = args.box_timeout
    if args.delay is not None:
        config.acquisition.inter_tick_delay = args.delay
    if args.param:
        config.parameters = list(args.param)
    if args.log_level:
        config.log_level = args.log_level
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main function."""
    parser = argparse.ArgumentParser(description="Probe box live monitor")
    parser.add_argument("--config", help="JSON configuration file")
    parser.add_argument("--port", help="Serial port (e.g., COM3, /dev/ttyUSB0)")
    parser.add_argument("--baudrate", type=int, help="Baud rate")
    parser.add_argument("--dialect", choices=[d.value for d in DialectName], help="Box reply dialect")
    parser.add_argument("--param", action="append", type=parse_binding, metavar="NAME:BOX:CHANNELS",
                        help="Parameter binding, may be repeated")
    parser.add_argument("--box-timeout", type=float, help="Reply timeout per box in seconds")
    parser.add_argument("--delay", type=float, help="Delay between ticks in seconds")
    parser.add_argument("--bounded", type=int, metavar="N", help="Collect N distinct samples per channel and stop")
    parser.add_argument("--duration", type=float, help="Stop after this many seconds")
    parser.add_argument("--output", help="CSV file for the captured samples")
    parser.add_argument("--simulate", action="store_true", help="Use simulated boxes instead of a serial port")
    parser.add_argument("--log-level", help="Log level")

    args = parser.parse_args(argv)
    if not args.config and not args.port and not args.simulate:
        parser.error("--port or --config is required unless --simulate is given")

    try:
        config = build_config(args)
        setup_logging_from_config(config)

        transport = simulated_transport(config) if args.simulate else None
        monitor = LiveMonitor(config, transport=transport)
        complete = monitor.run(target_count=args.bounded, duration=args.duration)

        if args.output and args.bounded:
            rows = monitor.save_samples(args.output)
            print(f"Saved {rows} samples to {args.output}")
        if args.bounded and not complete:
            return 2

    except (ProbeDAQError, ValueError) as e:
        print(f"Probe monitor failed: {e}")
        return 1
    return 0


def main_sync():
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    main_sync()
