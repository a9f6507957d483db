"""Family budget test suite."""
