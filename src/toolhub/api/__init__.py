"""HTTP API for the tool hub."""
