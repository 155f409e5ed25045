"""lexchat - streaming chat client core for the lawyer AI assistant."""

__version__ = "0.1.0"
