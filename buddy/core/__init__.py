"""Message admission, routing and tool orchestration."""
