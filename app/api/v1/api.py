"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import auth, overview, reviews, tours, users

api_router = APIRouter()

# Signup, login, password flows (before /users/{id})
api_router.include_router(auth.router)

# Own account + admin user management
api_router.include_router(users.router)

# Tours, reviews (flat and nested under a tour)
api_router.include_router(tours.router)
api_router.include_router(reviews.router)

# Landing page
api_router.include_router(overview.router)
