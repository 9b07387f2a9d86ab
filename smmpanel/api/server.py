"""
Starlette application exposing system health and monitored order sync.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..orchestrator.guard import AdmissionRejected
from ..services.order_sync import parse_sync_request

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_health_app(app) -> Starlette:
    """
    Construct the HTTP surface around an ``SmmPanelApplication``.

    The monitor's background scheduler follows the Starlette lifespan.
    """
    monitor = app.monitor

    async def system_health(request: Request) -> JSONResponse:
        try:
            health = monitor.get_system_health()
            summary = monitor.get_performance_summary()
        except Exception as exc:
            logger.exception("Get system health error: %s", exc)
            return JSONResponse({"message": "Failed to get system health"}, status_code=500)
        payload = health.to_dict()
        payload["summary"] = summary
        payload["timestamp"] = _timestamp()
        return JSONResponse(payload)

    async def reset_metrics(request: Request) -> JSONResponse:
        try:
            monitor.reset_metrics()
        except Exception as exc:
            logger.exception("Reset metrics error: %s", exc)
            return JSONResponse({"message": "Failed to reset metrics"}, status_code=500)
        return JSONResponse(
            {
                "success": True,
                "message": "Performance metrics reset successfully",
                "timestamp": _timestamp(),
            }
        )

    async def cleanup(request: Request) -> JSONResponse:
        try:
            cleaned = monitor.cleanup_stuck_operations()
        except Exception as exc:
            logger.exception("Cleanup stuck operations error: %s", exc)
            return JSONResponse({"message": "Failed to cleanup stuck operations"}, status_code=500)
        return JSONResponse(
            {
                "success": True,
                "message": f"Successfully cleaned up {cleaned} stuck operations",
                "cleanedCount": cleaned,
                "timestamp": _timestamp(),
            }
        )

    async def events(request: Request) -> JSONResponse:
        try:
            limit = int(request.query_params.get("limit", "50"))
        except ValueError:
            return JSONResponse({"message": "'limit' must be an integer"}, status_code=400)
        kind = request.query_params.get("kind")
        return JSONResponse({"events": app.event_log.recent(limit, kind=kind), "timestamp": _timestamp()})

    async def sync_orders(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse({"success": False, "message": "Invalid JSON body"}, status_code=400)
        if not isinstance(body, dict):
            return JSONResponse({"success": False, "message": "Invalid JSON body"}, status_code=400)
        try:
            orders, providers = parse_sync_request(body)
        except ValueError as exc:
            return JSONResponse({"success": False, "message": str(exc)}, status_code=400)

        user_id = request.headers.get("x-user-id") or str(body.get("userId") or "anonymous")
        try:
            result = await app.order_sync.sync_orders(orders, providers, user_id=user_id)
        except AdmissionRejected as exc:
            return JSONResponse(
                {
                    "success": False,
                    "message": "System is busy. Operation rejected to keep the panel stable.",
                    "currentOperations": exc.current_concurrency,
                },
                status_code=503,
            )
        except Exception as exc:
            logger.exception("Manual sync orders error: %s", exc)
            return JSONResponse(
                {"success": False, "message": "Failed to synchronize orders", "error": str(exc)},
                status_code=500,
            )

        payload = result.to_dict()
        payload["systemHealth"] = monitor.get_system_health().status
        return JSONResponse(payload)

    @asynccontextmanager
    async def lifespan(_: Starlette):
        await app.startup()
        try:
            yield
        finally:
            await app.shutdown()

    routes = [
        Route("/api/system/health", system_health, methods=["GET"]),
        Route("/api/system/reset-metrics", reset_metrics, methods=["POST"]),
        Route("/api/system/cleanup", cleanup, methods=["POST"]),
        Route("/api/system/events", events, methods=["GET"]),
        Route("/api/smm/orders/sync", sync_orders, methods=["POST"]),
    ]
    return Starlette(routes=routes, lifespan=lifespan)
