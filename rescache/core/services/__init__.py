"""Application services for the resource cache."""
