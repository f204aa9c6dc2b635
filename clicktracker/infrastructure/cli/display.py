"""Rich-based console rendering for the click tracker CLI."""

import logging
from typing import Any, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from clicktracker.domain.interfaces.user_interface import UserInterface
from clicktracker.domain.models.common import FieldDefinitions
from clicktracker.domain.models.tracking import ApiHealth, ClickTrackingResult, ContactSummary

logger = logging.getLogger(__name__)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_output(self, output: str, **kwargs: Any) -> None:
        title = kwargs.get("title")
        if title:
            self.console.print(Panel(Text(str(output)), title=f"[bold]{title}[/bold]", box=ROUNDED))
        else:
            self.console.print(output)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style."""
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_health(self, health: ApiHealth) -> None:
        style = "green" if health.is_healthy else "red"
        table = Table(show_header=False, box=ROUNDED, border_style=style, padding=(0, 1))
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row("CRM status", f"[{style}]{health.status}[/{style}]")
        if health.status_code is not None:
            table.add_row("HTTP status", str(health.status_code))
        table.add_row("Message", health.message)
        self.console.print(table)

    def display_contact(self, summary: ContactSummary) -> None:
        table = Table(show_header=False, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("Field", style="bold cyan")
        table.add_column("Value")
        table.add_row("Contact ID", summary.contact_id)
        table.add_row("Name", summary.name or "-")
        table.add_row("Email", summary.email or "-")
        table.add_row("Click count", summary.click_count)
        table.add_row("Last updated", summary.last_updated or "-")
        self.console.print(table)

    def display_click_result(self, result: ClickTrackingResult) -> None:
        self.console.print(Panel(
            Text.assemble(
                ("Contact ", "white"), (result.contact_id, "bold"),
                (f" ({result.contact_name or 'unknown'})\n", "dim"),
                ("Click count: ", "white"), (result.previous_count, "yellow"),
                (" -> ", "dim"), (str(result.new_count), "bold green"),
            ),
            title="[bold green]Click count updated[/bold green]",
            border_style="green",
            box=ROUNDED,
            padding=(0, 1)
        ))

    def display_field_definitions(self, definitions: FieldDefinitions) -> None:
        if not definitions:
            self.display_warning("The CRM returned no custom field definitions.")
            return
        table = Table(title="Custom fields", box=ROUNDED, border_style="cyan")
        table.add_column("Field ID", style="dim")
        table.add_column("Field key", style="bold")
        for field_id, field_key in sorted(definitions.items(), key=lambda item: item[1]):
            table.add_row(field_id, field_key)
        self.console.print(table)
