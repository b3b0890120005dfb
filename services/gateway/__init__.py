"""Gateway service: runs the exchange gateway behind its HTTP API."""
