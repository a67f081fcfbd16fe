from fastapi import APIRouter
from app.routers import leave, salary

# Centralized API router hub
# Routers are aggregated here, and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(leave.router)
api_router.include_router(salary.router)
