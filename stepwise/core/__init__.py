"""Execution core: agent loop, events and health monitoring."""
