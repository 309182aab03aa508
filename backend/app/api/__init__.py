"""
API routes initialization.

This module aggregates all API routers and provides a single router
to include in the main application.
"""

from fastapi import APIRouter

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

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(library.router)
api_router.include_router(media.router)
api_router.include_router(matching.router)
api_router.include_router(recommendations.router)
api_router.include_router(insights.router)
api_router.include_router(integrations.router)
api_router.include_router(collections.router)
api_router.include_router(friends.router)
api_router.include_router(notifications.router)
api_router.include_router(chat.router)
api_router.include_router(dashboard.router)
api_router.include_router(activity.router)
api_router.include_router(comments.router)
api_router.include_router(queue.router)
api_router.include_router(taste.router)
api_router.include_router(social_proof.router)
