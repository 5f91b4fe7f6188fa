"""Check execution and environment lookup."""
