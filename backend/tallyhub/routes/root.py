"""API root and site root."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse, RedirectResponse

from tallyhub import __version__
from tallyhub.routes.health import APP_DESCRIPTION, APP_NAME, ENDPOINTS
from tallyhub.schemas.envelope import success_response

router = APIRouter(tags=["Root"])


@router.get("/api", summary="API root")
async def api_root() -> JSONResponse:
    return success_response(
        {
            "name": APP_NAME,
            "version": __version__,
            "description": APP_DESCRIPTION,
            "endpoints": {"access": ENDPOINTS["access"], "users": ENDPOINTS["users"]},
        },
        "TallyHub API",
    )


@router.get("/", include_in_schema=False)
async def site_root() -> RedirectResponse:
    return RedirectResponse(url="/info")
