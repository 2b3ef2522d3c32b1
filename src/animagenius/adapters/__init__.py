"""Adapters for external collaborators (AI generation, billing)."""
