"""SafePulse: proximity-based SOS broadcast service."""
