"""Reminder planning and one-shot timer registry."""
