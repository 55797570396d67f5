"""Pydantic models shared across services."""
