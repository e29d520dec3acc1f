#!/usr/bin/env python3
"""
Demo script for Pixoo device discovery.

Probes every host of one /24 range (or the common home ranges when none is
given) and prints each device that answers like a Pixoo.

Usage:
    python demo_scan.py [BASE_ADDRESS]    e.g. 192.168.1
"""

import logging
import sys

from pixoo_commander import DeviceScanner, DiscoverySettings
from pixoo_commander.logging_config import get_logger, set_module_level, setup_logging

setup_logging(level=logging.INFO)

logger = get_logger(__name__)

set_module_level("pixoo_commander.scanner", logging.DEBUG)


def main():
    """Main demo function."""
    base_address = sys.argv[1] if len(sys.argv) > 1 else None

    print("\n" + "=" * 60)
    print("Pixoo Device Scan")
    print("=" * 60)

    settings = DiscoverySettings(probe_timeout=1.0)
    with DeviceScanner(settings=settings) as scanner:
        if base_address:
            print(f"\nScanning {base_address}.1-254...")
            devices = scanner.scan_range(base_address)
        else:
            print(f"\nScanning common ranges: {', '.join(settings.common_ranges)}")
            devices = scanner.scan_common_ranges()

    if not devices:
        print("\n✗ No Pixoo devices found")
        return

    print(f"\n✓ Found {len(devices)} device(s):")
    for device in devices:
        print(f"  - {device.name} ({device.model}, {device.size}x{device.size}) at {device.address}:{device.endpoint}")


if __name__ == "__main__":
    main()
