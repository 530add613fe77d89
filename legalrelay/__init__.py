"""Legal AI backend: document analysis, Q&A and user data relay."""

__version__ = "0.1.0"
