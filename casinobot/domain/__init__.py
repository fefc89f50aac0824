"""Domain services and models."""
