"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from crowdqr.api.routes import (
    auth, users, events, requests, votes,
    sessions, dashboard, live
)

api_router = APIRouter()

# Include all route modules
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(events.router)
api_router.include_router(requests.router)
api_router.include_router(votes.router)
api_router.include_router(sessions.router)
api_router.include_router(dashboard.router)
api_router.include_router(live.router)
