"""Append-only audit trail of admin lifecycle and mosque actions."""
