"""Scheduled safety check-ins with escalation to emergency contacts."""
