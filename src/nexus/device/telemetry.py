"""Best-effort battery, signal and device descriptor collection."""

import logging
import platform
from datetime import datetime
from typing import Callable

import psutil

from nexus.models import SignalClass, TelemetrySnapshot

logger = logging.getLogger(__name__)

DEFAULT_BATTERY_LEVEL = 100
DEFAULT_SIGNAL = SignalClass.POOR
UNKNOWN_DEVICE = "Unknown Device"

# Interface name fragments, checked in order
_INTERFACE_CLASSES: list[tuple[tuple[str, ...], SignalClass]] = [
    (("wlan", "wlp", "wi-fi", "wifi", "airport"), SignalClass.STRONG),
    (("eth", "enp", "ens", "eno", "en0", "en1"), SignalClass.STRONG),
    (("wwan", "rmnet", "pdp_ip", "ccmni", "cellular"), SignalClass.MODERATE),
    (("bnep", "bt-pan", "bluetooth"), SignalClass.WEAK),
]


def _read_battery_percent() -> float | None:
    battery = psutil.sensors_battery()
    return battery.percent if battery is not None else None


def _read_interfaces() -> list[str]:
    """Names of interfaces that are up, loopback excluded."""
    return [
        name
        for name, stats in psutil.net_if_stats().items()
        if stats.isup and not name.lower().startswith(("lo", "loopback"))
    ]


def classify_interfaces(names: list[str]) -> SignalClass:
    """Map active interface names to the best available signal class.

    Wi-Fi and ethernet count as strong, cellular as moderate, bluetooth
    tethering as weak; nothing recognized is poor.
    """
    order = [SignalClass.STRONG, SignalClass.MODERATE, SignalClass.WEAK]
    found: set[SignalClass] = set()
    for name in names:
        lowered = name.lower()
        for fragments, signal_class in _INTERFACE_CLASSES:
            if lowered.startswith(fragments) or any(f in lowered for f in fragments if len(f) > 3):
                found.add(signal_class)
                break
    for signal_class in order:
        if signal_class in found:
            return signal_class
    return DEFAULT_SIGNAL


class DeviceTelemetryProvider:
    """Collects battery level, signal class and a device descriptor.

    Never raises: every accessor falls back to a default (battery 100,
    signal poor, descriptor "Unknown Device") when the platform query
    fails or is not permitted.

    Example:
        provider = DeviceTelemetryProvider()
        snapshot = provider.snapshot()
        print(snapshot.battery_level, snapshot.signal_class.value)
    """

    def __init__(
        self,
        battery_reader: Callable[[], float | None] = _read_battery_percent,
        interface_reader: Callable[[], list[str]] = _read_interfaces,
    ) -> None:
        """Initialize the provider.

        Args:
            battery_reader: Returns battery percent, or None without a battery
            interface_reader: Returns names of active network interfaces
        """
        self._battery_reader = battery_reader
        self._interface_reader = interface_reader

    def battery_level(self) -> int:
        """Battery percentage clamped to 0-100."""
        try:
            percent = self._battery_reader()
        except Exception as e:
            logger.debug("Battery query failed: %s", e)
            return DEFAULT_BATTERY_LEVEL
        if percent is None:
            return DEFAULT_BATTERY_LEVEL
        try:
            return max(0, min(100, int(round(float(percent)))))
        except (TypeError, ValueError):
            return DEFAULT_BATTERY_LEVEL

    def signal_class(self) -> SignalClass:
        try:
            return classify_interfaces(self._interface_reader())
        except Exception as e:
            logger.debug("Network interface query failed: %s", e)
            return DEFAULT_SIGNAL

    def device_descriptor(self) -> str:
        try:
            system = platform.system() or "Device"
            release = platform.release()
            node = platform.node()
            name = f"{system} {release}".strip()
            if node:
                name = f"{name} ({node})"
            return f"{name} - {datetime.now().isoformat()}"
        except Exception:
            return UNKNOWN_DEVICE

    def snapshot(self) -> TelemetrySnapshot:
        """Fresh battery and signal reading."""
        return TelemetrySnapshot(
            battery_level=self.battery_level(),
            signal_class=self.signal_class(),
        )
