"""Operational scripts for the messaging service."""
