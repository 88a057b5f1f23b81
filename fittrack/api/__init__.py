"""Operator HTTP API."""
