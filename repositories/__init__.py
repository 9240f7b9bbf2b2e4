"""Document store and per-collection persistence."""
