"""Persistent conversation memory."""
