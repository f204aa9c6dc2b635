"""Defines common Value Objects used across the click tracker.

These objects represent simple values like contact and field identifiers,
ensuring consistency between the CRM client, the cache and the services.
"""

from typing import Any, Dict, NewType, TypedDict

# === CRM Identity ===
ContactID = NewType("ContactID", str)    # Opaque CRM-assigned contact id
FieldID = NewType("FieldID", str)        # Opaque CRM-assigned custom field id
FieldKey = NewType("FieldKey", str)      # Human-readable key, 'contact.' prefix stripped

# A contact is owned by the CRM; we only ever see its JSON representation.
Contact = Dict[str, Any]

# Field id -> normalized field key
FieldDefinitions = Dict[FieldID, FieldKey]

DEFAULT_CLICK_COUNT_FIELD = FieldKey("pnl_click_count")


class BackoffPolicy(TypedDict):
    """Value Object representing retry backoff configuration."""
    max_retries: int
    base_delay: float
    max_jitter: float
