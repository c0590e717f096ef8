"""Data model shared by the sync client components."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from nexus.errors import ParseError

SESSION_EXPIRED_MESSAGE = "Session expired. Please login again."
INVALID_RESPONSE_MESSAGE = ParseError.default_message


class SignalClass(Enum):
    """Coarse network signal quality."""

    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"
    POOR = "poor"


class SyncType(Enum):
    """How urgently an update is being pushed."""

    NORMAL = "normal"
    AGGRESSIVE = "aggressive"


@dataclass(frozen=True)
class Session:
    """Validated credentials for one deployment."""

    token: str
    deployment_code: str
    lock_flag: bool = False

    def __post_init__(self) -> None:
        if not self.token or not self.deployment_code:
            raise ValueError("token and deployment_code must both be present")


@dataclass(frozen=True)
class LocationSample:
    """A single location fix."""

    latitude: float
    longitude: float
    accuracy: float = 0.0
    altitude: float = 0.0
    speed: float = 0.0
    heading: float = 0.0
    captured_at: datetime = field(default_factory=datetime.now)

    def to_payload(self) -> dict[str, float]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
            "altitude": self.altitude,
            "speed": self.speed,
            "heading": self.heading,
        }


@dataclass(frozen=True)
class TelemetrySnapshot:
    """Battery and signal state at send time."""

    battery_level: int = 100
    signal_class: SignalClass = SignalClass.POOR


@dataclass(frozen=True)
class SyncRequest:
    """Everything needed for one location or heartbeat post."""

    session: Session
    telemetry: TelemetrySnapshot
    sample: LocationSample | None = None
    sync_type: SyncType = SyncType.NORMAL
    device_descriptor: str | None = None

    @property
    def aggressive(self) -> bool:
        return self.sync_type is SyncType.AGGRESSIVE

    def base_payload(self) -> dict[str, Any]:
        """Fields common to location updates and heartbeats."""
        return {
            "deploymentCode": self.session.deployment_code,
            "batteryStatus": self.telemetry.battery_level,
            "signal": self.telemetry.signal_class.value,
            "timestamp": datetime.now().isoformat(),
            "syncType": self.sync_type.value,
        }

    def location_payload(self) -> dict[str, Any]:
        if self.sample is None:
            raise ValueError("location payload requires a sample")
        payload = self.base_payload()
        payload["location"] = self.sample.to_payload()
        # Descriptor is only attached on the aggressive path
        payload["deviceInfo"] = self.device_descriptor if self.aggressive else None
        return payload

    def heartbeat_payload(self) -> dict[str, Any]:
        payload = self.base_payload()
        payload["status"] = "online"
        if self.aggressive and self.device_descriptor:
            payload["deviceInfo"] = self.device_descriptor
        return payload


@dataclass
class ApiResult:
    """Normalized outcome of every API operation."""

    success: bool
    message: str
    data: dict[str, Any] | None = None

    @classmethod
    def error(cls, message: str, data: dict[str, Any] | None = None) -> "ApiResult":
        return cls(success=False, message=message, data=data)

    @classmethod
    def from_response(cls, status_code: int, text: str) -> "ApiResult":
        """Map an HTTP response using the generic server contract.

        success requires both HTTP 200 and ``"success": true`` in the body.
        """
        try:
            body = json.loads(text)
        except (ValueError, TypeError):
            return cls.error(INVALID_RESPONSE_MESSAGE)
        if not isinstance(body, dict):
            return cls.error(INVALID_RESPONSE_MESSAGE)

        message = body.get("message")
        return cls(
            success=status_code == 200 and body.get("success") is True,
            message=str(message) if message is not None else "Request completed",
            data=body,
        )

    @property
    def session_expired(self) -> bool:
        return not self.success and self.message == SESSION_EXPIRED_MESSAGE

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.data is not None:
            result["data"] = self.data
        return result
