"""JSON envelopes shared by every endpoint."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def api_success(data: Any, status_code: int = 200) -> JSONResponse:
    body: Dict[str, Any] = {
        "success": True,
        "statusCode": status_code,
        "data": jsonable_encoder(data),
        "timestamp": _now_iso(),
    }
    return JSONResponse(status_code=status_code, content=body)


def api_error(status_code: int, message: str, stack: Optional[str] = None) -> JSONResponse:
    body: Dict[str, Any] = {
        "success": False,
        "statusCode": status_code,
        "message": message,
        "timestamp": _now_iso(),
    }
    if stack:
        body["stack"] = stack
    return JSONResponse(status_code=status_code, content=body)
