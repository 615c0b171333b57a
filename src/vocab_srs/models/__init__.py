"""Pydantic models: persisted records and HTTP payloads."""
