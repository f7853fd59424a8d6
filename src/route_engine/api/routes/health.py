"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_routing_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.routing.client import check_health as routing_health_check
    return routing_health_check


@router.get("/health/routing", status_code=status.HTTP_200_OK)
async def health_routing() -> dict:
    """Check routing service health."""
    if not settings.routing_base_url:
        return {"service": "routing", "healthy": False, "error": "Routing service base URL is not configured."}
    try:
        routing_health_check = _get_routing_health_check()
        status_flag = await routing_health_check()
        return {"service": "routing", "healthy": status_flag}
    except Exception as e:
        return {"service": "routing", "healthy": False, "error": str(e)}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Check database connection and route storage status."""
    from ...db.supabase import get_supabase_client

    supabase = get_supabase_client()
    if not supabase:
        return {
            "configured": False,
            "message": "Supabase not configured. Set ROUTE_ENGINE_SUPABASE_URL and ROUTE_ENGINE_SUPABASE_KEY environment variables.",
        }

    try:
        response = supabase.table("routes").select("id", count="exact").limit(1).execute()
        return {
            "configured": True,
            "connected": True,
            "routes_count": response.count or 0,
            "message": f"Database connected. Found {response.count or 0} routes.",
        }
    except Exception as exc:
        return {
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }
