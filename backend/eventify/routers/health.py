from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlmodel import Session, text

from eventify.db import get_session

router = APIRouter(prefix="/api", tags=["health"])

SERVICE_NAME = "eventify-auth"


@router.get("/health")
def health():
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/health/ready")
def readiness(session: Session = Depends(get_session)):
    try:
        session.exec(text("SELECT 1"))
    except Exception as exc:
        return JSONResponse(
            status_code=503,
            content={
                "status": "not ready",
                "service": SERVICE_NAME,
                "error": type(exc).__name__,
            },
        )

    return {
        "status": "ready",
        "service": SERVICE_NAME,
    }
