"""Configuration, logging and service wiring."""
