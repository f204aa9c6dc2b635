"""GHL click tracker: counts tracked clicks on a CRM contact custom field."""

__version__ = "1.0.0"
