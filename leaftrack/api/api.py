"""
API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from leaftrack.api.endpoints import (assignments, auth, geocode, health, locations,
                                     products, sales, users)

api_router = APIRouter()

# Auth (login, refresh, signup)
api_router.include_router(auth.router)

# Admin-managed catalogue and people
api_router.include_router(users.router)
api_router.include_router(products.router)
api_router.include_router(assignments.router)

# Field sales
api_router.include_router(sales.router)

# Location tracking pipeline
api_router.include_router(locations.router)
api_router.include_router(geocode.router)

api_router.include_router(health.router)
