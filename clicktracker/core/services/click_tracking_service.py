"""Click tracking use cases.

Reads a contact's click counter, increments it and writes it back. The
read-then-write sequence is not atomic: two clicks processed at the same
time for the same contact can both read N and both write N + 1.
"""

import logging
import re
import time
from typing import Any, Dict, Optional

from clicktracker.domain.errors import ContactNotFoundError, MissingParameterError
from clicktracker.domain.interfaces.crm import CrmGateway
from clicktracker.domain.models.common import DEFAULT_CLICK_COUNT_FIELD, ContactID, FieldDefinitions
from clicktracker.domain.models.tracking import ApiHealth, ClickTrackingResult, ContactSummary

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_count(value: Any) -> int:
    """Parses a stored counter the lenient way the CRM data needs.

    Takes the leading integer of the text ('12', ' 7 clicks', '3.9' -> 3).
    Anything without a leading integer counts as 0.
    """
    match = _LEADING_INT.match(str(value))
    if match is None:
        logger.warning(f"Unparseable click count {value!r}, treating as 0")
        return 0
    return int(match.group(1))


def _display_name(contact: Dict[str, Any]) -> Optional[str]:
    return contact.get("name") or contact.get("email")


class ClickTrackingService:
    """Application service behind the /track-click endpoint and CLI."""

    def __init__(self, crm: CrmGateway, field_name: str = DEFAULT_CLICK_COUNT_FIELD):
        self.crm = crm
        self.field_name = field_name
        self.started_at = time.monotonic()

    async def track_click(self, referrer: Optional[str]) -> ClickTrackingResult:
        """Increments the click counter of the contact identified by referrer.

        Raises:
            MissingParameterError: referrer is empty.
            ContactNotFoundError: the CRM has no such contact; nothing is written.
            FieldNotFoundError: the counter field is not defined in the CRM.
            ApiError / RateLimitExceededError: propagated from the CRM layer.
        """
        if not referrer:
            raise MissingParameterError(
                "referrer", hint="Please provide a referrer parameter with the contact ID"
            )

        logger.info(f"Processing click tracking for contact ID: {referrer}")
        contact = await self.crm.get_contact_by_id(ContactID(referrer))
        if contact is None:
            logger.info(f"No contact found for ID: {referrer}")
            raise ContactNotFoundError(referrer)

        contact_id = ContactID(str(contact["id"]))
        current_count = await self.crm.get_custom_field_value(contact, self.field_name)
        new_count = parse_count(current_count) + 1
        logger.info(f"Updating click count from {current_count} to {new_count}")

        await self.crm.update_contact_custom_field(contact_id, self.field_name, str(new_count))

        return ClickTrackingResult(
            contact_id=contact_id,
            contact_name=_display_name(contact),
            referrer=referrer,
            previous_count=current_count,
            new_count=new_count,
        )

    async def get_contact_summary(self, contact_id: str) -> ContactSummary:
        contact = await self.crm.get_contact_by_id(ContactID(contact_id))
        if contact is None:
            raise ContactNotFoundError(contact_id)

        click_count = await self.crm.get_custom_field_value(contact, self.field_name)
        return ContactSummary(
            contact_id=str(contact["id"]),
            name=contact.get("name"),
            email=contact.get("email"),
            click_count=click_count,
            last_updated=contact.get("dateUpdated"),
        )

    async def check_health(self) -> ApiHealth:
        return await self.crm.check_api_health()

    async def list_field_definitions(self) -> FieldDefinitions:
        return await self.crm.get_custom_field_definitions()

    @property
    def uptime(self) -> float:
        """Seconds since the service was created."""
        return time.monotonic() - self.started_at
