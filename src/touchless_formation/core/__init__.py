"""Shared types, event bus and the per-tick pipeline."""
