"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from tracker.api.v1.endpoints import admin, auth, public, submissions

api_router = APIRouter()

# Signup, login, sessions, password flows
api_router.include_router(auth.router)

# Access requests, liveness
api_router.include_router(public.router)

# Weighing reports, review, CSV export
api_router.include_router(submissions.router)

# Users, allowlist, access requests, audit, system health, Sheets export
api_router.include_router(admin.router)
