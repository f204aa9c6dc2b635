"""Main entry point for the click tracker.

Sets up the Typer CLI application, performs dependency injection (Composition
Root), defines CLI commands, and delegates execution to the CommandHandler or
to uvicorn for the HTTP server.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Coroutine, Dict, Optional, Tuple

import typer
import uvicorn
from typing_extensions import Annotated

# --- Core Layer ---
from clicktracker.core.command_handler import CommandHandler
from clicktracker.core.services.click_tracking_service import ClickTrackingService

# --- API Layer ---
from clicktracker.api.app import create_app
from clicktracker.api.middleware import InboundRateLimiter

# --- Infrastructure Layer ---
from clicktracker.infrastructure.cli.display import ConsoleDisplay
from clicktracker.infrastructure.config.settings import AppSettings, load_app_settings, validate_configuration
from clicktracker.infrastructure.crm.highlevel_client import HighLevelClient
from clicktracker.infrastructure.monitoring.logger_setup import setup_logging
from clicktracker.infrastructure.resilience.api_retry import ApiRetryService
from clicktracker.infrastructure.resilience.rate_limiter import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

CERT_HELP = (
    "Create certificates with mkcert or OpenSSL, e.g.:\n"
    "  openssl req -x509 -newkey rsa:4096 -keyout certs/key.pem -out certs/cert.pem -days 365 -nodes"
)

# --- Dependency Injection Container (Manual) ---

_dependencies: Optional[Dict[str, Any]] = None


def create_dependencies(settings: Optional[AppSettings] = None) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    dependencies: Dict[str, Any] = {}

    # 1. Configuration and logging first
    settings = settings or load_app_settings()
    setup_logging(log_level=settings.log_level, log_file=settings.log_file, log_format=settings.log_format)
    dependencies['settings'] = settings
    dependencies['ui'] = ConsoleDisplay()

    is_valid, config_errors = validate_configuration(settings)
    for error in config_errors:
        logger.warning(f"Configuration: {error}")
    if not is_valid:
        logger.error("Invalid configuration, cannot create the CRM client.")
        dependencies['ui'].display_error("Configuration invalid:\n" + "\n".join(config_errors))
        raise typer.Exit(code=1)

    # 2. Resilience services
    dependencies['rate_limiter'] = SlidingWindowRateLimiter(
        max_requests=settings.crm_rate_limit_max_requests,
        time_window=settings.crm_rate_limit_window,
    )
    dependencies['api_retry_service'] = ApiRetryService.from_policy(settings.backoff_policy)

    # 3. CRM client (owns the field definition cache)
    dependencies['crm_client'] = HighLevelClient(
        api_key=settings.ghl_api_key,
        location_id=settings.ghl_location_id,
        base_url=settings.ghl_base_url,
        api_version=settings.ghl_api_version,
        timeout=settings.api_timeout,
        rate_limiter=dependencies['rate_limiter'],
        retry_service=dependencies['api_retry_service'],
        field_cache_duration=settings.field_cache_duration,
    )
    dependencies['field_cache'] = dependencies['crm_client'].field_cache

    # 4. Core services
    dependencies['tracking_service'] = ClickTrackingService(
        crm=dependencies['crm_client'],
        field_name=settings.click_count_field,
    )
    dependencies['command_handler'] = CommandHandler(
        tracking_service=dependencies['tracking_service'],
        ui=dependencies['ui'],
        field_cache=dependencies['field_cache'],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


def get_dependencies() -> Dict[str, Any]:
    """Returns the wired dependencies, creating them on first use."""
    global _dependencies
    if _dependencies is None:
        _dependencies = create_dependencies()
    return _dependencies


def reset_dependencies() -> None:
    global _dependencies
    _dependencies = None


# --- Typer App Definition ---
app = typer.Typer(
    name="clicktracker",
    help="GHL click tracker: counts tracked link clicks on a CRM contact custom field.",
    add_completion=False,
)


def run_async(coro: Coroutine[Any, Any, bool]) -> None:
    """Runs a command handler coroutine and maps its outcome to the exit code."""
    succeeded = asyncio.run(coro)
    if not succeeded:
        raise typer.Exit(code=1)


def resolve_tls_files(cert_dir: Path) -> Optional[Tuple[Path, Path]]:
    """Returns (key, cert) if both PEM files exist in cert_dir."""
    key_path = cert_dir / "key.pem"
    cert_path = cert_dir / "cert.pem"
    if key_path.is_file() and cert_path.is_file():
        return key_path, cert_path
    return None


# --- CLI Commands ---

@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option(help="Interface to bind (defaults to HOST).")] = None,
    port: Annotated[Optional[int], typer.Option(help="Port to listen on (defaults to PORT/HTTPS_PORT).")] = None,
    https: Annotated[bool, typer.Option("--https", help="Serve over TLS using certs in CERT_DIR.")] = False,
):
    """Run the HTTP server."""
    dependencies = get_dependencies()
    settings: AppSettings = dependencies['settings']
    ui: ConsoleDisplay = dependencies['ui']

    api = create_app(
        dependencies['tracking_service'],
        inbound_limiter=InboundRateLimiter(
            max_requests=settings.inbound_rate_limit_max_requests,
            time_window=settings.inbound_rate_limit_window,
        ),
    )

    bind_host = host or settings.host
    tls_files = resolve_tls_files(settings.cert_dir) if https else None
    if https and tls_files is None:
        ui.display_warning(
            f"TLS certificates not found in {settings.cert_dir}. Starting HTTP server instead.\n{CERT_HELP}"
        )

    if tls_files:
        key_path, cert_path = tls_files
        bind_port = port or settings.https_port
        scheme = "https"
    else:
        bind_port = port or settings.port
        scheme = "http"

    ui.display_info(
        f"Server running on port {bind_port}\n"
        f"Health check: {scheme}://localhost:{bind_port}/health\n"
        f"Track click: {scheme}://localhost:{bind_port}/track-click?referrer=CONTACT_ID"
    )
    uvicorn.run(
        api,
        host=bind_host,
        port=bind_port,
        ssl_keyfile=str(key_path) if tls_files else None,
        ssl_certfile=str(cert_path) if tls_files else None,
        log_config=None,
    )


@app.command()
def health():
    """Check connectivity to the CRM API."""
    handler: CommandHandler = get_dependencies()['command_handler']
    run_async(handler.handle_health())


@app.command()
def contact(contact_id: Annotated[str, typer.Argument(help="CRM contact id.")]):
    """Show a contact and its current click count."""
    handler: CommandHandler = get_dependencies()['command_handler']
    run_async(handler.handle_show_contact(contact_id))


@app.command()
def track(referrer: Annotated[str, typer.Argument(help="CRM contact id to credit with a click.")]):
    """Record one click for a contact, as the /track-click endpoint does."""
    handler: CommandHandler = get_dependencies()['command_handler']
    run_async(handler.handle_track_click(referrer))


@app.command()
def fields(
    refresh: Annotated[bool, typer.Option("--refresh", help="Ignore the cached definitions.")] = False,
):
    """List the CRM custom field definitions (id -> key)."""
    handler: CommandHandler = get_dependencies()['command_handler']
    run_async(handler.handle_list_fields(refresh=refresh))


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
