"""API and job schemas."""
