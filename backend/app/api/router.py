"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from app.api.routes import admission, auth

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(admission.router)
api_router.include_router(auth.router)
