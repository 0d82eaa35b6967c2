"""Ring persistence and atomic file helpers."""
