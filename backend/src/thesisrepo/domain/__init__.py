"""Domain layer: storage contracts and document records."""
