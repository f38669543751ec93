"""Route geometry and position timelines."""
