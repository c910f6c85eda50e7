"""Domain Layer: value objects, records, ports and events.

Has no dependency on infrastructure; everything here is plain Python.
"""
