"""FastAPI application factory for the click tracker."""

import logging
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from clicktracker import __version__
from clicktracker.api import middleware
from clicktracker.api.errors import click_tracker_error_handler, http_error_handler, unhandled_error_handler
from clicktracker.api.routes import router
from clicktracker.core.services.click_tracking_service import ClickTrackingService
from clicktracker.domain.errors import ClickTrackerError

logger = logging.getLogger(__name__)


def create_app(
    tracking_service: ClickTrackingService,
    inbound_limiter: Optional[middleware.InboundRateLimiter] = None,
    cors_origins: Optional[List[str]] = None,
) -> FastAPI:
    """Builds the application around an already wired tracking service.

    Args:
        tracking_service: Service handling the click tracking use cases.
        inbound_limiter: Per-client limiter for incoming requests
            (100 requests / 15 minutes when omitted).
        cors_origins: Allowed CORS origins (all when omitted).
    """
    app = FastAPI(
        title="GHL Click Tracker",
        description="Counts tracked clicks on a GoHighLevel contact custom field",
        version=__version__,
    )
    app.state.tracking_service = tracking_service

    app.add_exception_handler(ClickTrackerError, click_tracker_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # The last registered middleware runs first.
    app.middleware("http")(middleware.unhandled_error_middleware)
    app.middleware("http")(middleware.inbound_rate_limit_middleware(
        inbound_limiter or middleware.InboundRateLimiter()
    ))
    app.middleware("http")(middleware.security_headers_middleware)
    app.middleware("http")(middleware.request_logging_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(router)
    logger.info("Click tracker API created")
    return app
