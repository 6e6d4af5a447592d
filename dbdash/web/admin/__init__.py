"""Admin web routes."""

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from dbdash.web.admin.database import router as database_router
from dbdash.web.auth.dependencies import require_web_auth

router = APIRouter(
    prefix="/admin",
    tags=["web-admin"],
    dependencies=[Depends(require_web_auth)],
)


@router.get("")
def admin_root():
    return RedirectResponse(url="/admin/database", status_code=303)


router.include_router(database_router)

__all__ = ["router"]
