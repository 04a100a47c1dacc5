"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter
from callbot.api.v1.endpoints import (
    calls,
    meetings,
    callback,
)

api_router = APIRouter()

api_router.include_router(calls.router)
api_router.include_router(meetings.router)

# Platform notifications (callback URI handed out with every call)
api_router.include_router(callback.router)
