"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from library_lending.api.routes import admin, books, borrows, users

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(users.router)
api_router.include_router(books.router)
api_router.include_router(borrows.router)
api_router.include_router(admin.router)
