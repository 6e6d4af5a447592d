"""Admin database dashboard web routes."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from dbdash.csrf import get_csrf_token
from dbdash.logging import get_logger
from dbdash.services import web_database as web_database_service
from dbdash.services.database_view import DatabaseView, ViewStateError
from dbdash.services.view_sessions import view_sessions
from dbdash.web.auth.dependencies import require_web_auth
from dbdash.web.request_parsing import parse_form_data

logger = get_logger(__name__)
templates = Jinja2Templates(directory="templates")
router = APIRouter(prefix="/database", tags=["web-admin-database"])

DASHBOARD_URL = "/admin/database"


def get_database_view(session_token: str = Depends(require_web_auth)) -> DatabaseView:
    return view_sessions.get_or_create(session_token)


def _back_to_dashboard() -> RedirectResponse:
    return RedirectResponse(DASHBOARD_URL, status_code=303)


@router.get("", response_class=HTMLResponse)
async def database_dashboard(
    request: Request, view: DatabaseView = Depends(get_database_view)
) -> HTMLResponse:
    """Render the model picker, record table, pager and any open dialog."""
    if not view.activated:
        await view.activate()
    context = web_database_service.page_context(view)
    context["csrf_token"] = get_csrf_token(request)
    return templates.TemplateResponse(request, "admin/database/index.html", context)


@router.post("/select")
async def database_select_model(
    request: Request, view: DatabaseView = Depends(get_database_view)
) -> RedirectResponse:
    form = await parse_form_data(request)
    model = form.get("model")
    try:
        await view.select_model(model if isinstance(model, str) else "")
    except ViewStateError as exc:
        view.notify("error", str(exc))
    return _back_to_dashboard()


@router.post("/page")
async def database_change_page(
    request: Request, view: DatabaseView = Depends(get_database_view)
) -> RedirectResponse:
    form = await parse_form_data(request)
    page, limit = web_database_service.parse_page_form(form)
    try:
        if limit is not None and limit != view.limit:
            await view.change_limit(limit)
        elif page is not None:
            await view.change_page(page)
    except ViewStateError as exc:
        view.notify("error", str(exc))
    return _back_to_dashboard()


@router.post("/records/new")
async def database_open_create(view: DatabaseView = Depends(get_database_view)) -> RedirectResponse:
    try:
        view.open_create()
    except ViewStateError as exc:
        view.notify("error", str(exc))
    return _back_to_dashboard()


@router.post("/records")
async def database_create_record(
    request: Request, view: DatabaseView = Depends(get_database_view)
) -> RedirectResponse:
    form = await parse_form_data(request)
    try:
        await view.submit_create(web_database_service.form_values(form))
    except ViewStateError as exc:
        view.notify("error", str(exc))
    return _back_to_dashboard()


@router.post("/records/{record_id}/view")
async def database_open_view(
    record_id: str, view: DatabaseView = Depends(get_database_view)
) -> RedirectResponse:
    try:
        await view.open_view(record_id)
    except ViewStateError as exc:
        view.notify("error", str(exc))
    return _back_to_dashboard()


@router.post("/records/{record_id}/edit")
async def database_open_edit(
    record_id: str, view: DatabaseView = Depends(get_database_view)
) -> RedirectResponse:
    try:
        view.open_edit(record_id)
    except ViewStateError as exc:
        view.notify("error", str(exc))
    return _back_to_dashboard()


@router.post("/records/{record_id}")
async def database_update_record(
    record_id: str, request: Request, view: DatabaseView = Depends(get_database_view)
) -> RedirectResponse:
    form = await parse_form_data(request)
    try:
        view.ensure_editing(record_id)
        await view.submit_edit(web_database_service.form_values(form))
    except ViewStateError as exc:
        view.notify("error", str(exc))
    return _back_to_dashboard()


@router.post("/records/{record_id}/delete")
async def database_request_delete(
    record_id: str, view: DatabaseView = Depends(get_database_view)
) -> RedirectResponse:
    try:
        view.request_delete(record_id)
    except ViewStateError as exc:
        view.notify("error", str(exc))
    return _back_to_dashboard()


@router.post("/records/{record_id}/delete/confirm")
async def database_confirm_delete(
    record_id: str, view: DatabaseView = Depends(get_database_view)
) -> RedirectResponse:
    try:
        view.ensure_deleting(record_id)
        await view.confirm_delete()
    except ViewStateError as exc:
        view.notify("error", str(exc))
    return _back_to_dashboard()


@router.post("/dialog/cancel")
async def database_cancel_dialog(view: DatabaseView = Depends(get_database_view)) -> RedirectResponse:
    view.cancel()
    return _back_to_dashboard()
