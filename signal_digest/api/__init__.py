"""HTTP API for signal-digest."""
