"""Connection management and the normalized result models."""
