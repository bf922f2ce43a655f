"""Reminders: natural-language time parsing, storage and delivery."""
