"""Group chat gate: moderation, etiquette and per-group settings."""
