"""Pydantic models for external JSON shapes and untrusted collaborator payloads."""
