"""Caching Service Implementation.

Holds the time-bounded cache of CRM custom field definitions.
Bounded Context: Cache Management
"""
