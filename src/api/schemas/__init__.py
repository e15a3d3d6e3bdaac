"""Pydantic models for error, rate-limit and health response bodies."""
