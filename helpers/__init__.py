"""Shared helpers for calendar alignment."""
