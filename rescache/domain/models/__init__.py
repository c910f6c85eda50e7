"""Domain models: value objects and records shared across the layers."""
