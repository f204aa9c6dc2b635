import pytest
from typer.testing import CliRunner
from unittest.mock import AsyncMock, MagicMock

import typer

from clicktracker import main
from clicktracker.core.command_handler import CommandHandler
from clicktracker.core.services.click_tracking_service import ClickTrackingService
from clicktracker.infrastructure.config.settings import AppSettings
from clicktracker.infrastructure.crm.highlevel_client import HighLevelClient


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_command_handler():
    handler = MagicMock(spec=CommandHandler)
    handler.handle_health = AsyncMock(return_value=True)
    handler.handle_show_contact = AsyncMock(return_value=True)
    handler.handle_track_click = AsyncMock(return_value=True)
    handler.handle_list_fields = AsyncMock(return_value=True)
    return handler


@pytest.fixture
def fake_dependencies(monkeypatch, tmp_path, mock_command_handler):
    """Replaces the lazily built composition root with mocks."""
    dependencies = {
        "settings": AppSettings(ghl_api_key="test-api-key", cert_dir=tmp_path / "certs"),
        "ui": MagicMock(),
        "tracking_service": MagicMock(spec=ClickTrackingService),
        "command_handler": mock_command_handler,
    }
    monkeypatch.setattr(main, "_dependencies", dependencies)
    return dependencies


def test_health_command(runner, fake_dependencies, mock_command_handler):
    result = runner.invoke(main.app, ["health"])

    assert result.exit_code == 0, result.output
    mock_command_handler.handle_health.assert_awaited_once()


def test_failed_command_exits_non_zero(runner, fake_dependencies, mock_command_handler):
    mock_command_handler.handle_health.return_value = False

    result = runner.invoke(main.app, ["health"])

    assert result.exit_code == 1


def test_contact_command(runner, fake_dependencies, mock_command_handler):
    result = runner.invoke(main.app, ["contact", "C1"])

    assert result.exit_code == 0, result.output
    mock_command_handler.handle_show_contact.assert_awaited_once_with("C1")


def test_track_command(runner, fake_dependencies, mock_command_handler):
    result = runner.invoke(main.app, ["track", "C1"])

    assert result.exit_code == 0, result.output
    mock_command_handler.handle_track_click.assert_awaited_once_with("C1")


@pytest.mark.parametrize("args, refresh", [(["fields"], False), (["fields", "--refresh"], True)])
def test_fields_command(runner, fake_dependencies, mock_command_handler, args, refresh):
    result = runner.invoke(main.app, args)

    assert result.exit_code == 0, result.output
    mock_command_handler.handle_list_fields.assert_awaited_once_with(refresh=refresh)


def test_serve_http(runner, fake_dependencies, mocker):
    uvicorn_run = mocker.patch("clicktracker.main.uvicorn.run")

    result = runner.invoke(main.app, ["serve", "--port", "8080"])

    assert result.exit_code == 0, result.output
    _, kwargs = uvicorn_run.call_args
    assert kwargs["host"] == "0.0.0.0"
    assert kwargs["port"] == 8080
    assert kwargs["ssl_keyfile"] is None
    assert kwargs["ssl_certfile"] is None
    fake_dependencies["ui"].display_info.assert_called_once()


def test_serve_https_with_certificates(runner, fake_dependencies, mocker):
    cert_dir = fake_dependencies["settings"].cert_dir
    cert_dir.mkdir()
    (cert_dir / "key.pem").write_text("key")
    (cert_dir / "cert.pem").write_text("cert")
    uvicorn_run = mocker.patch("clicktracker.main.uvicorn.run")

    result = runner.invoke(main.app, ["serve", "--https"])

    assert result.exit_code == 0, result.output
    _, kwargs = uvicorn_run.call_args
    assert kwargs["port"] == 3443
    assert kwargs["ssl_keyfile"] == str(cert_dir / "key.pem")
    assert kwargs["ssl_certfile"] == str(cert_dir / "cert.pem")
    assert "https://localhost:3443/health" in fake_dependencies["ui"].display_info.call_args.args[0]


def test_serve_https_without_certificates_falls_back(runner, fake_dependencies, mocker):
    uvicorn_run = mocker.patch("clicktracker.main.uvicorn.run")

    result = runner.invoke(main.app, ["serve", "--https"])

    assert result.exit_code == 0, result.output
    fake_dependencies["ui"].display_warning.assert_called_once()
    _, kwargs = uvicorn_run.call_args
    assert kwargs["port"] == 3000
    assert kwargs["ssl_certfile"] is None


def test_create_dependencies_wires_services(mocker):
    mocker.patch("clicktracker.main.setup_logging")
    settings = AppSettings(ghl_api_key="test-api-key", ghl_location_id="loc-123", max_retries=5,
                           base_retry_delay=0.5, max_retry_jitter=0.25, click_count_field="clicks")

    dependencies = main.create_dependencies(settings)

    crm_client = dependencies["crm_client"]
    assert isinstance(crm_client, HighLevelClient)
    assert crm_client.location_id == "loc-123"
    assert crm_client.rate_limiter is dependencies["rate_limiter"]
    assert dependencies["api_retry_service"].max_retries == 5
    assert dependencies["api_retry_service"].base_delay == 0.5
    assert dependencies["api_retry_service"].max_jitter == 0.25
    assert dependencies["field_cache"] is crm_client.field_cache
    assert dependencies["tracking_service"].field_name == "clicks"
    assert dependencies["command_handler"].field_cache is crm_client.field_cache


def test_create_dependencies_rejects_missing_api_key(mocker):
    mocker.patch("clicktracker.main.setup_logging")
    display = mocker.patch("clicktracker.main.ConsoleDisplay").return_value

    with pytest.raises(typer.Exit):
        main.create_dependencies(AppSettings(ghl_api_key=None))

    display.display_error.assert_called_once()
    assert "GHL_API_KEY" in display.display_error.call_args.args[0]


def test_get_dependencies_is_lazy(monkeypatch):
    created = []
    monkeypatch.setattr(main, "_dependencies", None)
    monkeypatch.setattr(main, "create_dependencies", lambda: created.append(1) or {"built": True})

    assert main.get_dependencies() == {"built": True}
    assert main.get_dependencies() == {"built": True}
    assert created == [1]

    main.reset_dependencies()
    assert main._dependencies is None
