"""API Resilience Implementations.

Contains the sliding-window rate limiter and the retry executor with
exponential backoff that guard every call to the CRM.
Bounded Context: API Resilience
"""
