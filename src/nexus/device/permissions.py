"""Permission capability checks consumed by the sync client."""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

CRITICAL_PERMISSIONS = ("ACCESS_FINE_LOCATION", "ACCESS_COARSE_LOCATION")


class PermissionGate(Protocol):
    def has_all_critical_permissions(self) -> bool: ...


class StaticPermissionGate:
    """Fixed answer; used on desktop platforms and in tests."""

    def __init__(self, granted: bool = True) -> None:
        self.granted = granted

    def has_all_critical_permissions(self) -> bool:
        return self.granted


class AndroidPermissionGate:
    """Checks location permissions through python-for-android.

    Fails closed: if the android module cannot be queried, permissions
    are reported as missing.
    """

    def __init__(self, permissions: tuple[str, ...] = CRITICAL_PERMISSIONS) -> None:
        self.permissions = permissions

    def has_all_critical_permissions(self) -> bool:
        try:
            from android.permissions import Permission, check_permission

            return all(check_permission(getattr(Permission, name)) for name in self.permissions)
        except Exception as e:
            logger.warning("Permission check failed: %s", e)
            return False


def default_permission_gate() -> PermissionGate:
    """Pick the gate for the running platform."""
    from plyer.utils import platform

    if platform == "android":
        return AndroidPermissionGate()
    return StaticPermissionGate(True)
