"""Host-side tooling for the SAM-BA boot monitor over USB."""
