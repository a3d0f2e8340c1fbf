"""Domain models for the agent layer."""
