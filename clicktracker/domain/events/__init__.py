"""Domain Events raised by the CRM resilience layer."""
