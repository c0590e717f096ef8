"""Device module for location, telemetry and permission checks."""

from nexus.device.location import LocationProvider, sample_from_fix
from nexus.device.permissions import (
    AndroidPermissionGate,
    PermissionGate,
    StaticPermissionGate,
    default_permission_gate,
)
from nexus.device.telemetry import DeviceTelemetryProvider, classify_interfaces

__all__ = [
    "AndroidPermissionGate",
    "DeviceTelemetryProvider",
    "LocationProvider",
    "PermissionGate",
    "StaticPermissionGate",
    "classify_interfaces",
    "default_permission_gate",
    "sample_from_fix",
]
