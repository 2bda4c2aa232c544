"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from callscribe.services.call_service import CallService


def get_call_service(request: Request) -> CallService:
    """Return the service built by the application lifespan."""

    service = getattr(request.app.state, "call_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Call service is not ready",
        )
    return service


CallServiceDep = Annotated[CallService, Depends(get_call_service)]


__all__ = ["CallServiceDep", "get_call_service"]
