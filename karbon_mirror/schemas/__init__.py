"""Pydantic schemas for sync and webhook results."""
