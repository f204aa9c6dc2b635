"""Result objects returned by the click tracking service.

Each knows how to render the JSON shape clients of the HTTP endpoint
already depend on (camelCase keys).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


@dataclass
class ClickTrackingResult:
    """Outcome of a successful read-increment-write cycle."""
    contact_id: str
    contact_name: Optional[str]
    referrer: str
    previous_count: str
    new_count: int
    timestamp: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contactId": self.contact_id,
            "contactName": self.contact_name,
            "referrer": self.referrer,
            "previousCount": self.previous_count,
            "newCount": self.new_count,
            "timestamp": _iso(self.timestamp),
        }


@dataclass
class ContactSummary:
    """Read-only view of a contact and its current click count."""
    contact_id: str
    name: Optional[str]
    email: Optional[str]
    click_count: str
    last_updated: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contactId": self.contact_id,
            "name": self.name,
            "email": self.email,
            "clickCount": self.click_count,
            "lastUpdated": self.last_updated,
        }


@dataclass
class ApiHealth:
    """Result of probing the CRM connection."""
    status: str  # 'healthy' | 'unhealthy'
    message: str
    status_code: Optional[int] = None

    @property
    def is_healthy(self) -> bool:
        return self.status == "healthy"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status}
        if self.status_code is not None:
            data["statusCode"] = self.status_code
        data["message"] = self.message
        return data
