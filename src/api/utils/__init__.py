"""Response helpers for the API layer."""
