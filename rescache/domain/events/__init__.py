"""Domain Event definitions.

Represents per-request diagnostics and partition lifecycle occurrences that
observability hooks can react to.
"""
