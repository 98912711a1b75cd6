"""Mosque admins and their verification lifecycle."""
