"""Service rate cards and auto-reply preferences."""
