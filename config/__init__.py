"""Engine configuration: pydantic schemas and environment settings."""
