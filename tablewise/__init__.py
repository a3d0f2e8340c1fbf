"""Tablewise: multi-agent conversational restaurant booking orchestrator."""

__version__ = "0.1.0"
