"""Pydantic request and response models for the operator API."""
