"""Prompt registry: versioned prompt blocks assembled into system prompts."""

__version__ = "1.0.0"
