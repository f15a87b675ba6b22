#!/usr/bin/env python3
"""Check the serial connection and reply format of every configured box."""

import argparse
import math
import sys
import time

from probe_daq.core.config import Config, DialectName
from probe_daq.core.exceptions import ProbeDAQError, TransportError
from probe_daq.data_acquisition.registry import ParameterRegistry
from probe_daq.data_acquisition.transport import SerialTransport
from probe_daq.protocols.commands import encode_poll_command
from probe_daq.protocols.dialects import make_dialect


def check_boxes(config: Config, boxes, rounds: int = 3) -> int:
    """
    Poll each box a few times and display the raw and decoded replies.

    Args:
        config: Configuration object
        boxes: Box numbers to poll
        rounds: Polls per box

    Returns:
        Number of boxes that never produced a valid channel
    """
    print(f"Checking boxes {list(boxes)} on {config.serial.port} @ {config.serial.baudrate} baud")
    print(f"Dialect: {config.protocol.dialect.value}")
    print("-" * 50)

    dialect = make_dialect(config.protocol)
    terminator = dialect.terminator.encode("ascii")
    transport = SerialTransport(config.serial, poll_interval=config.acquisition.read_poll_interval)
    silent = 0

    with transport:
        for box in boxes:
            answered = False
            print(f"\nBox {box:03d}:")
            for _ in range(rounds):
                start_time = time.time()
                try:
                    transport.discard_buffers()
                    transport.write(encode_poll_command(box))
                    raw = transport.read_until_or_timeout(terminator, config.acquisition.box_timeout)
                except TransportError as e:
                    print(f"  Transport error: {e}")
                    continue

                elapsed_ms = (time.time() - start_time) * 1000
                values = dialect.decode_bytes(raw)
                print(f"  Raw: {raw!r} ({elapsed_ms:.0f} ms)")
                print(f"  Channels: {['---' if math.isnan(v) else f'{v:.3f}' for v in values]}")
                if not all(math.isnan(v) for v in values):
                    answered = True
                time.sleep(config.acquisition.inter_tick_delay)

            if not answered:
                silent += 1
                print("  No valid reply")

    print("\n" + "=" * 50)
    print(f"Boxes answering: {len(boxes) - silent}/{len(boxes)}")
    return silent


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Probe box connection check")
    parser.add_argument("--config", help="JSON configuration file")
    parser.add_argument("--port", help="Serial port (e.g., COM5, /dev/ttyUSB0)")
    parser.add_argument("--baudrate", type=int, help="Baud rate, defaults to the configured rate")
    parser.add_argument("--dialect", choices=[d.value for d in DialectName], help="Box reply dialect")
    parser.add_argument("--boxes", type=int, nargs="+", help="Boxes to poll, defaults to the configured boxes")
    parser.add_argument("--rounds", type=int, default=3, help="Polls per box")

    args = parser.parse_args()
    if not args.config and not args.port:
        parser.error("--port or --config is required")

    try:
        config = Config.from_file(args.config) if args.config else Config.create_default(args.port)
        if args.port:
            config.serial.port = args.port
        if args.baudrate:
            config.serial.baudrate = args.baudrate
        if args.dialect:
            config.protocol.dialect = DialectName(args.dialect)

        boxes = args.boxes or list(ParameterRegistry.from_config(config).all_boxes())
        if not boxes:
            parser.error("No boxes configured; pass --boxes")

        silent = check_boxes(config, boxes, args.rounds)
    except ProbeDAQError as e:
        print(f"Box check failed: {e}")
        sys.exit(1)

    sys.exit(1 if silent else 0)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nCheck interrupted by user.")
