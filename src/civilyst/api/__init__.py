"""HTTP API for Civilyst."""
