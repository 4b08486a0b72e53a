"""Core building blocks of the buildloop orchestrator."""
