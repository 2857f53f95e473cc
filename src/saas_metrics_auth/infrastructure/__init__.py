"""Infrastructure layer: storage and identity provider adapters."""
