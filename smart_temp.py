#!/usr/bin/env python3
"""smart_temp.py - report disk temperatures using smartctl

Usage:
  smart-temp
  smart-temp -u F /dev/sda /dev/nvme0n1
  smart-temp --classic

This script shells out to `smartctl` (from smartmontools) once per
device and picks the temperature out of its text output. ATA/SATA,
NVMe and SCSI outputs are understood. Devices whose output cannot be
parsed are shown with "?" instead of aborting the run.
"""
import argparse
import enum
import glob
import logging
import os
import re
import shutil
import subprocess
import sys
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

__version__ = "1.0.0"

PROG = "smart-temp"

log = logging.getLogger(PROG)

DEVICE_PREFIXES = ("/dev/sd", "/dev/hd", "/dev/nvme")
DEVICE_GLOBS = ("/dev/sd[a-z]", "/dev/sd[a-z][a-z]", "/dev/nvme[0-9]*n[0-9]*")

UNKNOWN = "?"

# First smartctl release with NVMe support
NVME_MIN_VERSION = (6, 5)


class FatalError(Exception):
    """Precondition failure that ends the run with exit status 1."""


class Dialect(enum.Enum):
    ATA = "ata"
    NVME = "nvme"
    SCSI = "scsi"


MARKERS = (
    ("Device Model:", Dialect.ATA),
    ("Model Number:", Dialect.NVME),
    ("Product:", Dialect.SCSI),
)


@dataclass(frozen=True)
class Config:
    units: str = "C"
    classic: bool = False
    verbosity: int = 1
    ascii: bool = False
    smartctl: str = "smartctl"
    devices: Tuple[str, ...] = ()


@dataclass
class DeviceReading:
    device: str
    name: str = UNKNOWN
    temperature: Optional[int] = None
    suffix: str = ""

    @property
    def temperature_text(self) -> str:
        if self.temperature is None:
            return UNKNOWN
        return str(self.temperature)


class ArgumentParser(argparse.ArgumentParser):
    """argparse parser that exits with status 1 on usage errors."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog=PROG, description="Show disk temperatures via smartctl")
    parser.add_argument("devices", nargs="*", metavar="DEVICE",
                        help="Device to query, e.g. /dev/sda (default: all disks)")
    parser.add_argument("--classic", action="store_true",
                        help="Print one 'device: model: temperature' line per disk")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Be more verbose; shows debug messages")
    parser.add_argument("-q", "--quiet", action="count", default=0,
                        help="Be less verbose; once silences warnings")
    parser.add_argument("-u", "--units", choices=["C", "F"], default="C",
                        help="Temperature units (default: C)")
    parser.add_argument("-a", "--ascii", action="store_true",
                        help="Do not print the degree sign in classic output")
    parser.add_argument("--smartctl", default="smartctl", metavar="PATH",
                        help="smartctl program to run (default: smartctl)")
    parser.add_argument("-V", "--version", action="version",
                        version=f"%(prog)s {__version__}")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> Config:
    args = build_parser().parse_args(argv)
    return Config(
        units=args.units,
        classic=args.classic,
        verbosity=1 + args.verbose - args.quiet,
        ascii=args.ascii,
        smartctl=args.smartctl,
        devices=tuple(args.devices),
    )


def log_level(verbosity: int) -> int:
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.WARNING
    return logging.ERROR


def find_smartctl(program: str = "smartctl") -> Optional[str]:
    return shutil.which(program)


def require_root() -> None:
    if os.geteuid() != 0:
        raise FatalError("must be run as root to query disks")


def smartctl_version(smartctl: str) -> Optional[Tuple[int, int]]:
    """Return (major, minor) from `smartctl --version`, or None."""
    try:
        p = subprocess.run([smartctl, "--version"], capture_output=True, text=True, check=False)
    except OSError as e:
        log.warning("could not run %s --version: %s", smartctl, e)
        return None
    first = p.stdout.splitlines()[0] if p.stdout else ""
    # smartctl 7.5 2025-04-30 r5714 [x86_64-linux-...] (local build)
    m = re.match(r"smartctl\s+(\d+)\.(\d+)", first)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


def supports_nvme(version: Tuple[int, int]) -> bool:
    return version >= NVME_MIN_VERSION


def check_smartctl_version(smartctl: str) -> None:
    version = smartctl_version(smartctl)
    if version is not None and not supports_nvme(version):
        log.warning(
            "smartctl %d.%d predates NVMe support (%d.%d); NVMe temperatures will show as unknown",
            version[0], version[1], *NVME_MIN_VERSION,
        )


def is_device_path(path: str) -> bool:
    return path.startswith(DEVICE_PREFIXES)


def list_devices(requested: Sequence[str] = ()) -> List[str]:
    """Return the devices to query.

    Explicit paths are used as given, minus anything that does not look
    like a disk device node. With no explicit paths, SATA/SCSI disks and
    NVMe namespaces are discovered under /dev.
    """
    if requested:
        return [d for d in requested if is_device_path(d)]
    devices: List[str] = []
    for pattern in DEVICE_GLOBS:
        for path in sorted(glob.glob(pattern)):
            # nvme0n1p1 is a partition, not a namespace
            if path.startswith("/dev/nvme") and not re.fullmatch(r"/dev/nvme\d+n\d+", path):
                continue
            devices.append(path)
    return devices


def run_smartctl(smartctl: str, device: str) -> List[str]:
    cmd = [smartctl, "-i", "-A", device]
    log.debug("running %s", " ".join(cmd))
    try:
        # smartctl's exit status is a bitmask of drive problems, not a failure signal
        p = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, check=False)
    except OSError as e:
        log.warning("could not run smartctl for %s: %s", device, e)
        return []
    return p.stdout.splitlines()


def leading_int(text: str) -> Optional[int]:
    """Keep the digits before the first non-digit: '31 (Min/Max 0/59)' -> 31."""
    m = re.match(r"\d+", text)
    if not m:
        return None
    return int(m.group(0))


def _after_label(line: str, label: str) -> Optional[str]:
    if line.startswith(label):
        return line[len(label):].strip()
    return None


def ata_temperature(line: str) -> Optional[str]:
    # ID# ATTRIBUTE_NAME FLAG VALUE WORST THRESH TYPE UPDATED [WHEN_FAILED] RAW_VALUE
    if "Temperature_Celsius" not in line and "Airflow_Temperature_Cel" not in line:
        return None
    parts = line.split(None, 8)
    if len(parts) < 9:
        return None
    raw = parts[8]
    if raw[:1].isdigit():
        return raw
    # WHEN_FAILED column present ("-" or "FAILING_NOW"), raw value follows it
    rest = raw.split(None, 1)
    if len(rest) < 2:
        return None
    return rest[1]


def nvme_temperature(line: str) -> Optional[str]:
    return _after_label(line, "Temperature:")


def scsi_temperature(line: str) -> Optional[str]:
    return _after_label(line, "Current Drive Temperature:")


EXTRACTORS: Dict[Dialect, Callable[[str], Optional[str]]] = {
    Dialect.ATA: ata_temperature,
    Dialect.NVME: nvme_temperature,
    Dialect.SCSI: scsi_temperature,
}


def find_marker(lines: List[str]) -> Tuple[Optional[Dialect], str, int]:
    """Return (dialect, model name, index of the marker line)."""
    for i, line in enumerate(lines):
        for label, dialect in MARKERS:
            if line.startswith(label):
                return dialect, line[len(label):].strip() or UNKNOWN, i
    return None, UNKNOWN, len(lines)


def parse_smartctl_lines(lines: List[str]) -> Tuple[str, Optional[int]]:
    """Return (name, celsius) from smartctl -i -A output lines."""
    dialect, name, start = find_marker(lines)
    if dialect is None:
        return UNKNOWN, None
    log.debug("detected %s output for %s", dialect.value, name)
    extract = EXTRACTORS[dialect]
    fallback = None
    for line in lines[start + 1:]:
        value = extract(line)
        if not value:
            continue
        if dialect is Dialect.ATA and "Temperature_Celsius" not in line:
            # Airflow_Temperature_Cel only counts if no Temperature_Celsius row shows up
            if fallback is None:
                fallback = value
            continue
        return name, leading_int(value)
    if fallback is not None:
        return name, leading_int(fallback)
    return name, None


def to_fahrenheit(celsius: int) -> int:
    """Convert with round-half-up: 37 -> 99, -40 -> -40."""
    # 10*F = 2*(9*C + 160); add 5 before flooring to round halves up
    return (2 * (celsius * 9 + 160) + 5) // 10


def unit_suffix(config: Config) -> str:
    if config.classic and not config.ascii:
        return "\N{DEGREE SIGN}" + config.units
    return config.units


def read_device(config: Config, device: str) -> DeviceReading:
    name, celsius = parse_smartctl_lines(run_smartctl(config.smartctl, device))
    reading = DeviceReading(device=device, name=name)
    if celsius is not None:
        reading.temperature = to_fahrenheit(celsius) if config.units == "F" else celsius
        reading.suffix = unit_suffix(config)
    return reading


def format_readings(readings: List[DeviceReading], classic: bool = False) -> List[str]:
    if classic:
        return [f"{r.device}: {r.name}: {r.temperature_text}{r.suffix}" for r in readings]
    dev_w = max((len(r.device) for r in readings), default=0)
    name_w = max([1] + [len(r.name) for r in readings])
    return [
        f"{r.device.ljust(dev_w)} {r.name.ljust(name_w)} {r.temperature_text}{r.suffix}"
        for r in readings
    ]


def main(argv=None):
    config = parse_args(argv)
    logging.basicConfig(level=log_level(config.verbosity), format="%(name)s: %(levelname)s: %(message)s")

    try:
        smartctl = find_smartctl(config.smartctl)
        if not smartctl:
            raise FatalError(f"{config.smartctl} not found. Please install smartmontools.")
        require_root()
    except FatalError as e:
        print(f"{PROG}: error: {e}", file=sys.stderr)
        return 1
    check_smartctl_version(smartctl)

    config = replace(config, smartctl=smartctl)
    readings = [read_device(config, d) for d in list_devices(config.devices)]
    for line in format_readings(readings, classic=config.classic):
        print(line)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
