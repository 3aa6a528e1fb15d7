from fastapi import APIRouter
from profiling_engine.routers import jobs

api_router = APIRouter()
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
