"""Invoices exchanged between the two members of a tent."""
