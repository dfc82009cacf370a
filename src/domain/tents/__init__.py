"""Tents: two-member workspaces shared by a client and a manager."""
