"""Proof backend implementations (loaded lazily through the factory)."""
