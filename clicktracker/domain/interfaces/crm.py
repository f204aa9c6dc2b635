"""Interface for the CRM access layer.

These four operations are the entire surface the application services and
the HTTP layer rely on.
"""

import abc
from typing import Optional

from clicktracker.domain.models.common import Contact, ContactID, FieldDefinitions
from clicktracker.domain.models.tracking import ApiHealth


class CrmGateway(abc.ABC):
    """Abstract Base Class for CRM contact operations."""

    @abc.abstractmethod
    async def get_contact_by_id(self, contact_id: ContactID) -> Optional[Contact]:
        """Fetches a contact.

        Returns:
            The contact, or None when the CRM returned no identifiable contact.

        Raises:
            ApiError: If the CRM call fails after retries.
            RateLimitExceededError: If the local limiter denies the call.
        """
        pass

    @abc.abstractmethod
    async def get_custom_field_value(self, contact: Contact, field_name: str) -> str:
        """Reads a custom field value from an already fetched contact.

        Returns:
            The value as a string, '0' when the field is absent.
        """
        pass

    @abc.abstractmethod
    async def update_contact_custom_field(
        self, contact_id: ContactID, field_name: str, value: str
    ) -> Contact:
        """Writes a single custom field value and returns the updated contact.

        Raises:
            FieldNotFoundError: If no field definition matches field_name.
        """
        pass

    @abc.abstractmethod
    async def check_api_health(self) -> ApiHealth:
        """Probes the CRM connection without rate limiting or retries."""
        pass

    async def get_custom_field_definitions(self) -> FieldDefinitions:
        """Returns the field id -> field key mapping (optional)."""
        raise NotImplementedError
