import pytest
from unittest.mock import AsyncMock, MagicMock

from clicktracker.core.services.click_tracking_service import ClickTrackingService, parse_count
from clicktracker.domain.errors import (
    ApiError,
    ContactNotFoundError,
    ErrorKind,
    FieldNotFoundError,
    MissingParameterError,
)
from clicktracker.domain.interfaces.crm import CrmGateway
from clicktracker.domain.models.tracking import ApiHealth

CONTACT = {"id": "C1", "name": "Ada Lovelace", "email": "ada@example.com", "dateUpdated": "2024-05-01"}


@pytest.fixture
def mock_crm():
    crm = MagicMock(spec=CrmGateway)
    crm.get_contact_by_id = AsyncMock(return_value=CONTACT)
    crm.get_custom_field_value = AsyncMock(return_value="0")
    crm.update_contact_custom_field = AsyncMock(return_value=CONTACT)
    crm.check_api_health = AsyncMock(return_value=ApiHealth(status="healthy", message="ok", status_code=200))
    crm.get_custom_field_definitions = AsyncMock(return_value={"f1": "pnl_click_count"})
    return crm


@pytest.fixture
def service(mock_crm):
    return ClickTrackingService(mock_crm, field_name="pnl_click_count")


@pytest.mark.asyncio
async def test_track_click_increments_counter(service, mock_crm):
    result = await service.track_click("C1")

    mock_crm.get_contact_by_id.assert_awaited_once_with("C1")
    mock_crm.get_custom_field_value.assert_awaited_once_with(CONTACT, "pnl_click_count")
    mock_crm.update_contact_custom_field.assert_awaited_once_with("C1", "pnl_click_count", "1")
    assert result.previous_count == "0"
    assert result.new_count == 1
    data = result.to_dict()
    assert data["contactId"] == "C1"
    assert data["contactName"] == "Ada Lovelace"
    assert data["referrer"] == "C1"
    assert data["timestamp"].endswith("Z")


@pytest.mark.asyncio
async def test_track_click_uses_email_when_name_missing(service, mock_crm):
    mock_crm.get_contact_by_id.return_value = {"id": "C2", "email": "x@example.com"}
    mock_crm.get_custom_field_value.return_value = "41"

    result = await service.track_click("C2")

    assert result.contact_name == "x@example.com"
    mock_crm.update_contact_custom_field.assert_awaited_once_with("C2", "pnl_click_count", "42")


@pytest.mark.asyncio
@pytest.mark.parametrize("referrer", [None, ""])
async def test_track_click_requires_referrer(service, mock_crm, referrer):
    with pytest.raises(MissingParameterError) as exc_info:
        await service.track_click(referrer)

    assert exc_info.value.kind is ErrorKind.MISSING_PARAMETER
    assert exc_info.value.hint == "Please provide a referrer parameter with the contact ID"
    mock_crm.get_contact_by_id.assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_contact_writes_nothing(service, mock_crm):
    mock_crm.get_contact_by_id.return_value = None

    with pytest.raises(ContactNotFoundError, match="No contact found with ID: ghost"):
        await service.track_click("ghost")

    mock_crm.update_contact_custom_field.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_field_definition_propagates(service, mock_crm):
    mock_crm.update_contact_custom_field.side_effect = FieldNotFoundError("pnl_click_count", ["lead_source"])

    with pytest.raises(FieldNotFoundError):
        await service.track_click("C1")


@pytest.mark.asyncio
async def test_crm_errors_propagate(service, mock_crm):
    mock_crm.get_contact_by_id.side_effect = ApiError("Invalid JWT", status=401)

    with pytest.raises(ApiError) as exc_info:
        await service.track_click("C1")

    assert exc_info.value.is_auth_error


@pytest.mark.asyncio
async def test_contact_summary(service, mock_crm):
    mock_crm.get_custom_field_value.return_value = "5"

    summary = await service.get_contact_summary("C1")

    assert summary.to_dict() == {
        "contactId": "C1",
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "clickCount": "5",
        "lastUpdated": "2024-05-01",
    }


@pytest.mark.asyncio
async def test_contact_summary_unknown_contact(service, mock_crm):
    mock_crm.get_contact_by_id.return_value = None

    with pytest.raises(ContactNotFoundError):
        await service.get_contact_summary("ghost")


@pytest.mark.asyncio
async def test_health_and_fields_delegate_to_crm(service, mock_crm):
    assert (await service.check_health()).is_healthy
    assert await service.list_field_definitions() == {"f1": "pnl_click_count"}


def test_uptime_is_non_negative(service):
    assert service.uptime >= 0


@pytest.mark.parametrize("raw, expected", [
    ("0", 0),
    ("12", 12),
    (" 7 clicks", 7),
    ("3.9", 3),
    ("-2", -2),
    ("abc", 0),
    ("", 0),
    (None, 0),
    (5, 5),
])
def test_parse_count(raw, expected):
    assert parse_count(raw) == expected
