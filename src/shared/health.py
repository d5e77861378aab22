from time import perf_counter

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.webhooks.infrastructure.container import WebhookContainer
from src.webhooks.infrastructure.dependencies import get_webhook_container

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health():
    return {"ok": True}


@router.get("/health/db", status_code=status.HTTP_200_OK)
async def health_db(container: WebhookContainer = Depends(get_webhook_container)):
    t0 = perf_counter()
    try:
        async with container.session_factory() as s:
            await s.execute(text("SELECT 1"))
        dt_ms = int((perf_counter() - t0) * 1000)
        return {"ok": True, "checks": {"db_select_1_ms": dt_ms}}
    except Exception as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "ok": False,
                "checks": {"db": "SELECT 1 failed"},
                "error": type(e).__name__,
            },
        )
