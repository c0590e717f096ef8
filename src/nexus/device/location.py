"""Bounded-time location fixes from the platform GPS."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Protocol

from nexus.device.permissions import PermissionGate, StaticPermissionGate
from nexus.errors import PermissionDeniedError
from nexus.models import LocationSample

logger = logging.getLogger(__name__)


class GpsBackend(Protocol):
    """The subset of plyer's gps facade used here."""

    def configure(self, on_location: Any, on_status: Any = None) -> None: ...

    def start(self, minTime: int = 1000, minDistance: float = 0) -> None: ...

    def stop(self) -> None: ...


def _default_gps() -> GpsBackend:
    from plyer import gps

    return gps


def sample_from_fix(**kwargs: Any) -> LocationSample | None:
    """Normalize provider keyword arguments into a LocationSample.

    Providers differ in naming (lat/lon vs latitude/longitude, bearing vs
    heading); a fix without coordinates is discarded.
    """
    lat = kwargs.get("lat", kwargs.get("latitude"))
    lon = kwargs.get("lon", kwargs.get("longitude"))
    if lat is None or lon is None:
        return None

    def _float(*keys: str) -> float:
        for key in keys:
            value = kwargs.get(key)
            if value is None:
                continue
            try:
                return float(value)
            except (TypeError, ValueError):
                continue
        return 0.0

    try:
        return LocationSample(
            latitude=float(lat),
            longitude=float(lon),
            accuracy=_float("accuracy"),
            altitude=_float("altitude"),
            speed=_float("speed"),
            heading=_float("heading", "bearing"),
            captured_at=datetime.now(),
        )
    except (TypeError, ValueError):
        return None


class LocationProvider:
    """Wraps the platform geolocation capability.

    ``get_fix`` waits at most ``timeout`` seconds for the first usable fix.
    Expiry, missing permission and unsupported platforms all yield None.
    Only one GPS listener runs at a time: a caller arriving while a fix is
    in flight joins it, still bounded by its own ``timeout``.

    Example:
        provider = LocationProvider()
        sample = await provider.get_fix(timeout=5.0)
        if sample is None:
            print("no fix this tick")
    """

    def __init__(
        self,
        gps: GpsBackend | None = None,
        permission_gate: PermissionGate | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            gps: GPS backend; plyer's gps facade when omitted
            permission_gate: Consulted before every fix attempt
        """
        self._gps = gps
        self._permission_gate = permission_gate or StaticPermissionGate(True)
        self._inflight: asyncio.Task | None = None

    def _backend(self) -> GpsBackend:
        if self._gps is None:
            self._gps = _default_gps()
        return self._gps

    async def get_fix(self, timeout: float) -> LocationSample | None:
        """Best-effort single fix bounded by ``timeout`` seconds."""
        try:
            if not self._permission_gate.has_all_critical_permissions():
                logger.debug("Skipping fix: %s", PermissionDeniedError.default_message)
                return None
        except Exception as e:
            logger.debug("Permission check failed: %s", e)
            return None

        inflight = self._inflight
        if inflight is None or inflight.done():
            self._inflight = asyncio.ensure_future(self._acquire(timeout))
            # _acquire is itself bounded by timeout
            return await asyncio.shield(self._inflight)

        logger.debug("Joining in-flight location fix")
        try:
            return await asyncio.wait_for(asyncio.shield(inflight), timeout=timeout)
        except asyncio.TimeoutError:
            logger.debug("No location fix within %.1fs", timeout)
            return None

    async def _acquire(self, timeout: float) -> LocationSample | None:
        loop = asyncio.get_running_loop()
        fix: asyncio.Future[LocationSample] = loop.create_future()

        def _resolve(sample: LocationSample) -> None:
            if not fix.done():
                fix.set_result(sample)

        def on_location(**kwargs: Any) -> None:
            sample = sample_from_fix(**kwargs)
            if sample is not None:
                loop.call_soon_threadsafe(_resolve, sample)

        def on_status(status_type: str, status: str) -> None:
            logger.debug("GPS status: %s=%s", status_type, status)

        try:
            gps = self._backend()
            gps.configure(on_location=on_location, on_status=on_status)
            gps.start(minTime=1000, minDistance=0)
        except Exception as e:
            # NotImplementedError on platforms without a GPS facade
            logger.debug("GPS unavailable: %s", e)
            return None

        try:
            return await asyncio.wait_for(fix, timeout=timeout)
        except asyncio.TimeoutError:
            logger.debug("No location fix within %.1fs", timeout)
            return None
        finally:
            try:
                gps.stop()
            except Exception as e:
                logger.debug("GPS stop failed: %s", e)
