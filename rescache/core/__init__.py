"""Core Application Layer: routing, strategies, fallback and lifecycle.

Connects the domain layer with the infrastructure layer through interfaces.
Contains the ResourceCacheService entry point used by the host application.
"""
