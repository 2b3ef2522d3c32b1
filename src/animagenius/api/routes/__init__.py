"""API route modules."""

from animagenius.api.routes import admin, ai, health, projects, subscriptions, video

__all__ = ["admin", "ai", "health", "projects", "subscriptions", "video"]
