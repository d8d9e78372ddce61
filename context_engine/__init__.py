"""Conversational context engine: agent memory, prompt assembly and reply post-processing."""

__version__ = "0.1.0"
