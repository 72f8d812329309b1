"""Utility modules shared across Pulse."""
