"""Network Resilience Implementations.

Wraps transports with per-attempt timeouts and retries with exponential
backoff.
Bounded Context: Network Resilience
"""
