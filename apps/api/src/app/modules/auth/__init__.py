"""Authentication module - admin and super admin login."""
