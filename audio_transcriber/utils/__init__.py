"""Shared utilities: errors, classification, retry and quota gating."""
