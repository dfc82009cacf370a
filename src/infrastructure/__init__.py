"""Persistence and outbound HTTP used by the domain services."""
