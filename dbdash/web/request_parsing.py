"""Async request parsing dependencies for web route handlers."""

from __future__ import annotations

from fastapi import HTTPException, Request
from starlette.datastructures import FormData

MAX_FORM_FIELDS = 500


async def parse_form_data(request: Request) -> FormData:
    form = await request.form(max_fields=MAX_FORM_FIELDS)
    if any(not isinstance(value, str) for _, value in form.multi_items()):
        raise HTTPException(status_code=400, detail="File uploads are not accepted here")
    return form
