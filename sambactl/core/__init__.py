"""Registry, session, protocol and flash orchestration."""
