"""USB transport implementations."""
