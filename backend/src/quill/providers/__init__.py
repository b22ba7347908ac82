"""
Stream producers package.

Import built-in producers so they register with the producer registry.
"""

# Import producers for side-effect registration
from .adapters import ollama_adapter  # noqa: F401
from .adapters import openai_adapter  # noqa: F401

__all__ = [
    "ollama_adapter",
    "openai_adapter",
]
