"""
API route modules.
"""

from app.api.routes import (
    activity,
    auth,
    chat,
    collections,
    comments,
    dashboard,
    friends,
    insights,
    integrations,
    library,
    matching,
    media,
    notifications,
    queue,
    recommendations,
    social_proof,
    taste,
    users,
)

__all__ = [
    "activity",
    "auth",
    "chat",
    "collections",
    "comments",
    "dashboard",
    "friends",
    "insights",
    "integrations",
    "library",
    "matching",
    "media",
    "notifications",
    "queue",
    "recommendations",
    "social_proof",
    "taste",
    "users",
]
