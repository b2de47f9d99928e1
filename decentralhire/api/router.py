from fastapi import APIRouter

from decentralhire.api.routes import applications, events, health, postings

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(events.router, prefix="/events", tags=["ingest"])
api_router.include_router(postings.router, prefix="/postings", tags=["public"])
api_router.include_router(applications.router, prefix="/applications", tags=["public"])
