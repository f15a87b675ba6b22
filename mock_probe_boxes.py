#!/usr/bin/env python3
"""
Mock Probe Box Simulator

This script simulates a chain of probe signal-conditioning boxes on a serial
line. It waits for VALL poll commands and answers for every simulated box in
the selected reply dialect, so the monitor can be exercised without hardware.

Command:  *NNNVALL#<CR>   (NNN = three digit box number)
Reply:    *NNNVALL<four channel values>#

Usage:
    python mock_probe_boxes.py --port COM6 --boxes 1 2 3
    python mock_probe_boxes.py --port /dev/ttyUSB1 --boxes 5 --dialect tagged --noise 0.01
"""

import argparse
import sys
import time
from typing import Dict, Optional, Sequence

import serial

from probe_daq.core.config import DialectName, ProtocolConfig
from probe_daq.core.exceptions import ProtocolError
from probe_daq.data_acquisition.simulated import SimulatedBox
from probe_daq.protocols.commands import decode_poll_command
from probe_daq.protocols.dialects import ReplyDialect, make_dialect


class MockProbeBoxes:
    """Mock probe boxes answering poll commands on a serial port."""

    def __init__(self, port: str, dialect: ReplyDialect, boxes: Sequence[int],
                 values: Optional[Sequence[float]] = None, noise: float = 0.0,
                 reply_delay: float = 0.0):
        """
        Initialize mock probe boxes.

        Args:
            port: Serial port to answer on
            dialect: Reply dialect of the simulated firmware
            boxes: Box numbers present on the line
            values: Resting channel values (mm)
            noise: Standard deviation of the channel noise
            reply_delay: Time each box takes to answer
        """
        self.port = port
        self.dialect = dialect
        self.reply_delay = reply_delay
        self.boxes: Dict[int, SimulatedBox] = {
            box: SimulatedBox(box, values=values, noise=noise, seed=box) for box in boxes
        }
        self.running = False
        self.replies = 0

        # Serial connection
        self.serial_conn = None

    def connect(self) -> bool:
        """Connect to serial port."""
        try:
            self.serial_conn = serial.serial_for_url(
                self.port,
                baudrate=115200,
                timeout=0.1,
                bytesize=8,
                parity='N',
                stopbits=1
            )
            print(f"Connected to {self.port}")
            return True
        except (serial.SerialException, ValueError) as e:
            print(f"Failed to connect to {self.port}: {e}")
            return False

    def disconnect(self):
        """Disconnect from serial port."""
        if self.serial_conn and self.serial_conn.is_open:
            self.serial_conn.close()
            print("Disconnected from serial port")

    def handle_command(self, command: bytes) -> Optional[bytes]:
        """
        Build the reply to one command line.

        Returns:
            Reply bytes, or None if no simulated box answers
        """
        try:
            box = decode_poll_command(command)
        except ProtocolError:
            return None

        sim = self.boxes.get(box)
        if sim is None:
            return None
        return self.dialect.format_reply(sim.box, sim.next_values()).encode("ascii")

    def serve(self):
        """Answer poll commands until stopped."""
        if not self.serial_conn or not self.serial_conn.is_open:
            print("Serial port not connected!")
            return

        self.running = True
        print(f"Simulating boxes {sorted(self.boxes)}")
        print("Press Ctrl+C to stop...")

        try:
            while self.running:
                line = self.serial_conn.read_until(b"\r")
                if not line:
                    continue

                reply = self.handle_command(line)
                if reply is None:
                    continue

                if self.reply_delay > 0:
                    time.sleep(self.reply_delay)
                self.serial_conn.write(reply)
                self.replies += 1

                # Status update
                if self.replies % 500 == 0:
                    print(f"Sent {self.replies} replies")

        except KeyboardInterrupt:
            print("\nSimulation stopped by user")
        except serial.SerialException as e:
            print(f"Serial error: {e}")
        finally:
            self.running = False

    def stop(self):
        """Stop answering commands."""
        self.running = False


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Mock probe boxes answering VALL commands")
    parser.add_argument("--port", required=True, help="Serial port (e.g., COM6, /dev/ttyUSB1)")
    parser.add_argument("--boxes", type=int, nargs="+", default=[1], help="Box numbers to simulate")
    parser.add_argument("--dialect", choices=[d.value for d in DialectName], default=DialectName.FIXED_OFFSET.value,
                        help="Reply dialect (default: fixed_offset)")
    parser.add_argument("--values", type=float, nargs="+", help="Resting channel values in mm")
    parser.add_argument("--noise", type=float, default=0.005, help="Channel noise in mm (default: 0.005)")
    parser.add_argument("--reply-delay", type=float, default=0.0, help="Reply delay in seconds")

    args = parser.parse_args()

    dialect = make_dialect(ProtocolConfig(dialect=DialectName(args.dialect)))
    mock = MockProbeBoxes(
        port=args.port,
        dialect=dialect,
        boxes=args.boxes,
        values=args.values,
        noise=args.noise,
        reply_delay=args.reply_delay,
    )

    if mock.connect():
        try:
            mock.serve()
        finally:
            mock.disconnect()
    else:
        print("Failed to connect to serial port")
        sys.exit(1)


if __name__ == "__main__":
    main()
