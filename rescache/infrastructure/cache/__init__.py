"""Cache storage implementations.

Durable partitioned storage (diskcache) and the bounded in-process
ephemeral value cache.
Bounded Context: Cache Management
"""
