"""rescache: tiered resource caching between an application and its backend.

Routes every cacheable fetch through a policy router, a per-request
consistency strategy, and a two-level cache (durable partitions plus a
bounded in-process value cache).
"""

__version__ = "1.0.0"
