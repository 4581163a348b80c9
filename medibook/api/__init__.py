from fastapi import APIRouter
from medibook.api.routes import appointments, notifications

api_router = APIRouter()

api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
