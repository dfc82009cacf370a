"""Mailbox connections, inbox sync, inquiry triage and auto-replies."""
