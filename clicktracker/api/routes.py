"""Click tracking endpoints."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from clicktracker.core.services.click_tracking_service import ClickTrackingService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_tracking_service(request: Request) -> ClickTrackingService:
    return request.app.state.tracking_service


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/health")
async def health(request: Request, service: ClickTrackingService = Depends(get_tracking_service)):
    """Service liveness plus a CRM connectivity probe.

    The CRM being unhealthy is reported in the body, not as an error status.
    503 is returned only if the probe itself blows up.
    """
    try:
        ghl_health = await service.check_health()
    except Exception as exc:
        logger.error(f"Health check failed: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=503,
            content={"status": "error", "message": "Service unavailable", "timestamp": _now_iso()},
        )
    return {
        "status": "ok",
        "timestamp": _now_iso(),
        "ghl": ghl_health.to_dict(),
        "uptime": service.uptime,
        "protocol": request.url.scheme,
        "secure": request.url.scheme == "https",
    }


@router.get("/track-click")
async def track_click(
    referrer: Optional[str] = None,
    service: ClickTrackingService = Depends(get_tracking_service),
):
    """Increments the click counter of the contact whose id is `referrer`."""
    result = await service.track_click(referrer)
    return {
        "success": True,
        "message": "Click count updated successfully",
        "data": result.to_dict(),
    }


@router.get("/contact/{contact_id}")
async def get_contact(contact_id: str, service: ClickTrackingService = Depends(get_tracking_service)):
    summary = await service.get_contact_summary(contact_id)
    return {"success": True, "data": summary.to_dict()}
