"""API utilities: response rendering and client identification."""
