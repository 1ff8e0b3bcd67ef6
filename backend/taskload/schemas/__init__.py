"""Pydantic request/response schemas shared by the REST API and the realtime relay."""
