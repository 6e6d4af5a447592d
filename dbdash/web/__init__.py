"""Web routes package."""

from fastapi import APIRouter

from dbdash.web.admin import router as admin_router

router = APIRouter(tags=["web"])

router.include_router(admin_router)

__all__ = ["router"]
