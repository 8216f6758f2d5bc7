from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from knockrd.presentation.dependencies import get_address

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def root(address: Annotated[str, Depends(get_address)]) -> str:
    return f"knockrd alive from {address}\n"


@router.get("/healthz")
async def healthz() -> dict:
    return {"status": "ok"}
