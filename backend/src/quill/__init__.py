"""Quill: stream language-model responses to a desktop client, with cancellation."""

__version__ = "0.1.0"
