"""Infrastructure adapters (logging, realtime streams)."""
