from fastapi import APIRouter

from appraisal.core.config import settings

router = APIRouter()

@router.get("/")
def root():
    return {
        "name": "Appraisal Engine",
        "env": settings.APP_ENV,
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
    }
