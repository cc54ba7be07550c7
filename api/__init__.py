"""
API Layer for the Smart-Home Face Gate

This package provides the FastAPI-based development backend that exposes:
- REST endpoints for the face identity registry and face verification
- REST endpoints for smart-home devices (door lock included)
- Health check endpoint

It also holds the pydantic wire schemas shared with the client.
"""
