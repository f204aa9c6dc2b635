"""GoHighLevel implementation of the CrmGateway interface.

Every contact call passes the rate limiter gate and runs inside the retry
executor. Non-success responses are turned into ApiError before the retry
executor sees them. Field definitions come from a FieldDefinitionCache fed
by this client. Each request opens its own httpx.AsyncClient; no connection
pool outlives a call, and the timeout bounds the whole call including
the response body.
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional

import httpx

from clicktracker.domain.errors import ApiError, FieldNotFoundError, RateLimitExceededError
from clicktracker.domain.events.api_events import ApiCallInitiated, ApiCallRejected, ApiCallSucceeded
from clicktracker.domain.interfaces.crm import CrmGateway
from clicktracker.domain.models.common import Contact, ContactID, FieldDefinitions, FieldID
from clicktracker.domain.models.tracking import ApiHealth
from clicktracker.infrastructure.cache.field_cache import (
    DEFAULT_CACHE_DURATION_SECONDS,
    FieldDefinitionCache,
    normalize_field_key,
)
from clicktracker.infrastructure.resilience.api_retry import ApiRetryService, dispatch_event
from clicktracker.infrastructure.resilience.rate_limiter import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://rest.gohighlevel.com/v1"
DEFAULT_API_VERSION = "2021-07-28"
DEFAULT_TIMEOUT_SECONDS = 30.0
USER_AGENT = "GHL-Click-Tracker/1.0"
DEFAULT_FIELD_VALUE = "0"


def _unwrap_contact(data: Any) -> Any:
    """Accepts both {'contact': {...}} and a bare contact object."""
    if isinstance(data, dict) and data.get("contact"):
        return data["contact"]
    return data


class HighLevelClient(CrmGateway):
    """Rate-limited, retrying client for the GoHighLevel contacts API."""

    def __init__(
        self,
        api_key: str,
        location_id: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        retry_service: Optional[ApiRetryService] = None,
        field_cache: Optional[FieldDefinitionCache] = None,
        field_cache_duration: float = DEFAULT_CACHE_DURATION_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initializes the client.

        Args:
            api_key: Static bearer token for the CRM.
            location_id: Scopes custom field lookups.
            base_url: API root, without trailing slash.
            api_version: Value of the required 'Version' header.
            timeout: Deadline in seconds for a whole request, body included.
            rate_limiter: Gate for contact and field calls.
            retry_service: Retry executor for contact calls.
            field_cache: Field definition cache; one backed by this client is
                created when omitted.
            field_cache_duration: Lifetime used when creating the cache.
            transport: Optional httpx transport (used by tests).
        """
        if not api_key:
            raise ValueError("GHL API key not provided")
        self.api_key = api_key
        self.location_id = location_id
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter()
        self.retry_service = retry_service or ApiRetryService()
        self.field_cache = field_cache or FieldDefinitionCache(
            loader=self._fetch_custom_field_definitions,
            cache_duration=field_cache_duration,
        )
        self._transport = transport

    # --- HTTP plumbing ---

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Version": self.api_version,
            "User-Agent": USER_AGENT,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    @staticmethod
    def _raise_for_response(response: httpx.Response) -> None:
        """Converts a non-success response into ApiError."""
        if response.is_success:
            return
        message = f"API request failed: {response.status_code} {response.reason_phrase}"
        code = f"HTTP_{response.status_code}"
        try:
            error_data = response.json()
        except (json.JSONDecodeError, ValueError):
            error_data = None
        if isinstance(error_data, dict):
            if error_data.get("message"):
                message = str(error_data["message"])
            if error_data.get("code"):
                code = str(error_data["code"])
        raise ApiError(message, status=response.status_code, code=code)

    async def _request(self, method: str, path: str, json_body: Optional[Dict[str, Any]] = None,
                       params: Optional[Dict[str, Any]] = None) -> Any:
        """Sends one rate-limited request and returns the decoded JSON body."""
        if not self.rate_limiter.can_make_request():
            wait_time = self.rate_limiter.get_wait_time()
            dispatch_event(ApiCallRejected(endpoint=path, wait_time_seconds=wait_time))
            raise RateLimitExceededError(wait_time)

        url = f"{self.base_url}{path}"
        logger.info(f"Making API request: {method} {url}")
        dispatch_event(ApiCallInitiated(method=method, endpoint=path))
        start_time = time.perf_counter()
        try:
            async with self._client() as client:
                response = await asyncio.wait_for(
                    client.request(method, url, headers=self._headers(), json=json_body, params=params),
                    timeout=self.timeout,
                )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise ApiError(f"Request to {url} timed out after {self.timeout}s", status=504, code="TIMEOUT") from e
        except httpx.TransportError as e:
            raise ApiError(f"Request to {url} failed: {e}", status=503, code="TRANSPORT_ERROR") from e

        self._raise_for_response(response)
        latency_ms = (time.perf_counter() - start_time) * 1000
        dispatch_event(ApiCallSucceeded(method=method, endpoint=path, latency_ms=latency_ms,
                                        status_code=response.status_code))
        if not response.content:
            return {}
        return response.json()

    # --- Field definitions ---

    async def _fetch_custom_field_definitions(self) -> FieldDefinitions:
        params = {"locationId": self.location_id} if self.location_id else None
        data = await self._request("GET", "/custom-fields/", params=params)
        field_map: FieldDefinitions = {}
        for field in (data or {}).get("customFields") or []:
            field_id = field.get("id")
            field_key = field.get("fieldKey")
            if field_id and field_key:
                field_map[FieldID(field_id)] = normalize_field_key(field_key)
        return field_map

    async def get_custom_field_definitions(self) -> FieldDefinitions:
        return await self.field_cache.get_definitions()

    # --- CrmGateway ---

    async def get_contact_by_id(self, contact_id: ContactID) -> Optional[Contact]:
        path = f"/contacts/{contact_id}"

        async def fetch_contact() -> Any:
            return await self._request("GET", path)

        data = await self.retry_service.execute_with_retry(fetch_contact, endpoint_name=f"GET {path}")
        contact = _unwrap_contact(data)
        if not isinstance(contact, dict) or not contact.get("id"):
            return None

        logger.info(f"Retrieved contact: {contact['id']} - {contact.get('name') or contact.get('email')}")
        return contact

    async def get_custom_field_value(self, contact: Contact, field_name: str) -> str:
        definitions = await self.field_cache.get_definitions()

        custom_field = contact.get("customField")
        if isinstance(custom_field, list):
            for field in custom_field:
                if not isinstance(field, dict):
                    continue
                field_id = field.get("id")
                if field_id and definitions.get(field_id) == field_name:
                    value = (field.get("value") or field.get("field_value")
                             or field.get("fieldValue") or DEFAULT_FIELD_VALUE)
                    logger.info(f"Found custom field {field_name}: {value}")
                    return str(value)

        custom_fields = contact.get("customFields")
        if isinstance(custom_fields, dict) and custom_fields.get(field_name):
            return str(custom_fields[field_name])

        if contact.get(field_name):
            return str(contact[field_name])

        logger.info(f"Custom field {field_name} not found, defaulting to {DEFAULT_FIELD_VALUE}")
        return DEFAULT_FIELD_VALUE

    async def update_contact_custom_field(
        self, contact_id: ContactID, field_name: str, value: str
    ) -> Contact:
        custom_field_id = await self.field_cache.find_field_id(field_name)
        if custom_field_id is None:
            definitions = await self.field_cache.get_definitions()
            raise FieldNotFoundError(field_name, definitions.values())

        path = f"/contacts/{contact_id}"
        update_data = {"customField": [{"id": custom_field_id, "value": value}]}
        logger.info(f"Updating contact {contact_id} field {field_name} to: {value}")

        async def put_contact() -> Any:
            return await self._request("PUT", path, json_body=update_data)

        data = await self.retry_service.execute_with_retry(put_contact, endpoint_name=f"PUT {path}")
        return _unwrap_contact(data)

    async def check_api_health(self) -> ApiHealth:
        """Probes /locations/ directly, bypassing the limiter and retries."""
        url = f"{self.base_url}/locations/"
        try:
            async with self._client() as client:
                response = await asyncio.wait_for(client.get(url, headers=self._headers()), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"CRM health check timed out after {self.timeout}s")
            return ApiHealth(status="unhealthy", message=f"Request timed out after {self.timeout}s")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"CRM health check failed: {e}")
            return ApiHealth(status="unhealthy", message=str(e) or type(e).__name__)

        if response.is_success:
            return ApiHealth(status="healthy", status_code=response.status_code,
                             message="API connection successful")
        return ApiHealth(status="unhealthy", status_code=response.status_code,
                         message="API connection failed")
