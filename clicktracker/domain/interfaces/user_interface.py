"""Interface for presenting results to the operator.

Defines the contract for displaying information, errors and warnings, plus
the domain-specific views used by the CLI commands, allowing different UI
implementations (e.g., console, plain text).
"""

import abc
from typing import Any

from clicktracker.domain.models.common import FieldDefinitions
from clicktracker.domain.models.tracking import ApiHealth, ClickTrackingResult, ContactSummary


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays standard output to the user.

        Args:
            output: The text to display.
            **kwargs: Additional arguments for formatting (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def display_health(self, health: ApiHealth) -> None:
        pass

    @abc.abstractmethod
    def display_contact(self, summary: ContactSummary) -> None:
        pass

    @abc.abstractmethod
    def display_click_result(self, result: ClickTrackingResult) -> None:
        pass

    @abc.abstractmethod
    def display_field_definitions(self, definitions: FieldDefinitions) -> None:
        pass
