"""API router composition for all route groups."""

from fastapi import APIRouter

from .routes import auth

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
