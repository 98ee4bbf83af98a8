import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from appraisal.api.health import router as health_router
from appraisal.api.root import router as root_router
from appraisal.api.templates import router as templates_router
from appraisal.api.cycles import router as cycles_router
from appraisal.api.assignments import router as assignments_router
from appraisal.api.evaluations import router as evaluations_router
from appraisal.api.disputes import router as disputes_router
from appraisal.api.audit import router as audit_router
from appraisal.api.exports import router as exports_router
from appraisal.core.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Appraisal Engine")

# CORS middleware for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["ETag"],
)

app.include_router(root_router)
app.include_router(health_router)
app.include_router(templates_router)
app.include_router(cycles_router)
app.include_router(assignments_router)
app.include_router(evaluations_router)
app.include_router(disputes_router)
app.include_router(audit_router)
app.include_router(exports_router)
