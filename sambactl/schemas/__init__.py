"""JSON schemas for packaged configuration."""
