"""API v1 router configuration."""

from fastapi import APIRouter

from app.api.v1.endpoints import (
    appointments,
    auth,
    clinics,
    health,
    leads,
    patients,
    public,
    recalls,
    whatsapp,
)

api_router = APIRouter()

api_router.include_router(health.router)

# Staff dashboard
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(clinics.router)
api_router.include_router(patients.router, prefix="/patients", tags=["Patients"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(recalls.router)

# Public and automation
api_router.include_router(public.router)
api_router.include_router(leads.router)
api_router.include_router(whatsapp.router)
