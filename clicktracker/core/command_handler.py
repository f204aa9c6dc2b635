"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), delegates the work
to the ClickTrackingService and renders results through the UserInterface.
Failures are reported to the operator rather than raised.
"""

import logging
from typing import Optional

from clicktracker.core.services.click_tracking_service import ClickTrackingService
from clicktracker.domain.errors import ClickTrackerError
from clicktracker.domain.interfaces.user_interface import UserInterface
from clicktracker.infrastructure.cache.field_cache import FieldDefinitionCache

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to the tracking service."""

    def __init__(
        self,
        tracking_service: ClickTrackingService,
        ui: UserInterface,
        field_cache: Optional[FieldDefinitionCache] = None,
    ):
        """Initializes the CommandHandler with required services."""
        self.tracking_service = tracking_service
        self.ui = ui
        self.field_cache = field_cache

    def _report_failure(self, action: str, error: Exception) -> None:
        if isinstance(error, ClickTrackerError):
            logger.warning(f"{action} failed ({error.kind.value}): {error}")
        else:
            logger.error(f"{action} failed: {error}", exc_info=True)
        self.ui.display_error(f"{action} failed: {error}")

    async def handle_health(self) -> bool:
        """Handles the 'health' command. Returns True when the CRM is reachable."""
        logger.info("Handling 'health' command")
        try:
            health = await self.tracking_service.check_health()
        except Exception as e:
            self._report_failure("Health check", e)
            return False
        self.ui.display_health(health)
        return health.is_healthy

    async def handle_show_contact(self, contact_id: str) -> bool:
        logger.info(f"Handling 'contact' command for: {contact_id}")
        try:
            summary = await self.tracking_service.get_contact_summary(contact_id)
        except Exception as e:
            self._report_failure("Contact lookup", e)
            return False
        self.ui.display_contact(summary)
        return True

    async def handle_track_click(self, referrer: str) -> bool:
        logger.info(f"Handling 'track' command for: {referrer}")
        try:
            result = await self.tracking_service.track_click(referrer)
        except Exception as e:
            self._report_failure("Click tracking", e)
            return False
        self.ui.display_click_result(result)
        return True

    async def handle_list_fields(self, refresh: bool = False) -> bool:
        """Handles the 'fields' command, optionally bypassing the cached copy."""
        logger.info(f"Handling 'fields' command (refresh={refresh})")
        if refresh:
            if self.field_cache is None:
                self.ui.display_warning("No field definition cache is configured; listing without refresh.")
            else:
                self.field_cache.invalidate()
        try:
            definitions = await self.tracking_service.list_field_definitions()
        except Exception as e:
            self._report_failure("Listing custom fields", e)
            return False
        self.ui.display_field_definitions(definitions)
        return True

