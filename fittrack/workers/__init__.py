"""Long-running worker processes."""
