# app/routes/__init__.py
from fastapi import APIRouter
from app.routes.trip import invitation


api_router = APIRouter()

# Trip routes
api_router.include_router(invitation.router)
