"""Transcript generation across model candidates."""
