"""User profiles mirrored from the auth provider."""
