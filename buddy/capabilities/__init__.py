"""Capability slots and the built-in capabilities."""
