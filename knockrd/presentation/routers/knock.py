import logging
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates

from knockrd.application.handshake import check_address, confirm_token, issue_token
from knockrd.domain.errors import InvalidInput
from knockrd.domain.ports.backend import BackendPort
from knockrd.presentation.dependencies import get_address, get_backend

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Knock"])

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


def _bad_request(e: InvalidInput) -> PlainTextResponse:
    logger.info("bad request", extra={"reason": str(e) or type(e).__name__})
    return PlainTextResponse("Bad request\n", status_code=status.HTTP_400_BAD_REQUEST)


@router.get("/allow", response_class=HTMLResponse)
async def get_allow(
    request: Request,
    address: Annotated[str, Depends(get_address)],
    backend: Annotated[BackendPort, Depends(get_backend)],
):
    try:
        issued = await issue_token(backend, address)
    except InvalidInput as e:
        return _bad_request(e)
    return templates.TemplateResponse(
        request,
        "form.html",
        {"address": issued.address, "csrf_token": issued.token},
    )


@router.post("/allow")
async def post_allow(
    address: Annotated[str, Depends(get_address)],
    backend: Annotated[BackendPort, Depends(get_backend)],
    csrf_token: Annotated[str, Form()] = "",
    allow: Annotated[str, Form()] = "",
    disallow: Annotated[str, Form()] = "",
):
    if allow:
        intent = "allow"
    elif disallow:
        intent = "disallow"
    else:
        intent = ""
    try:
        confirmation = await confirm_token(backend, address, csrf_token, intent)
    except InvalidInput as e:
        return _bad_request(e)
    return PlainTextResponse(confirmation.message + "\n")


@router.get("/auth")
async def get_auth(
    address: Annotated[str, Depends(get_address)],
    backend: Annotated[BackendPort, Depends(get_backend)],
):
    if not await check_address(backend, address):
        return PlainTextResponse("Forbidden\n", status_code=status.HTTP_403_FORBIDDEN)
    return PlainTextResponse("OK\n")
