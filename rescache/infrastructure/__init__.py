"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the cache to the outside world (disk, HTTP, console, config files)
by implementing the interfaces defined in the domain layer.
"""
