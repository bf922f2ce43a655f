"""Buddy - WhatsApp chat assistant engine."""

__version__ = "0.1.0"
