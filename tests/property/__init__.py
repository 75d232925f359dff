"""Property-based tests for nodeflow."""
