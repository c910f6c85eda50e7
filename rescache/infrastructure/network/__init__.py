"""Network transport adapters (httpx)."""
