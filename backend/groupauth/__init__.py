"""Credential, session, and group authorization core."""
