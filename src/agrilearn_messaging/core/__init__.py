"""Core configuration, security and error definitions."""
