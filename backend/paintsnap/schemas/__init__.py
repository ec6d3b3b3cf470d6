"""Pydantic request/response schemas: the API contract with the web client."""
