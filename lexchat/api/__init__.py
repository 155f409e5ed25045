"""API endpoints for the chat views."""
