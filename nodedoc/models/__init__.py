"""Pydantic request/response models for the node API."""
