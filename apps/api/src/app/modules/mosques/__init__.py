"""Mosques, their verification codes, and the cascades that fan out to admins."""
