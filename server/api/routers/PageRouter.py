"""Page router: resolve page hints and update page content."""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from shared.clients.cms.exceptions import (
    AuthError,
    ContentStoreError,
    NotFoundError,
    TargetNotFoundError,
    WriteTargetMissingError,
)
from shared.dependencies.auth import verify_api_key
from shared.models.update import PageRequest, ResolveRequest, ResolveResponse

page_router = APIRouter(prefix="/pages")


def _to_http_exception(error: Exception) -> HTTPException:
    """Map a pipeline error to the HTTP status reported to the caller."""
    if isinstance(error, (NotFoundError, TargetNotFoundError, WriteTargetMissingError)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, AuthError):
        return HTTPException(status_code=502, detail=f"Upstream authorization failed: {error}")
    if isinstance(error, ContentStoreError):
        return HTTPException(status_code=502, detail=str(error))
    return HTTPException(status_code=422, detail=str(error))


@page_router.post(
    "/resolve",
    dependencies=[Depends(verify_api_key)],
    tags=["Pages"],
)
async def handle_resolve(request: Request, body: ResolveRequest) -> JSONResponse:
    """Resolve a page hint to its exact path.

    Raises:
        HTTPException: 404 if no page matches, 422 for a blank hint, 502 on upstream errors.
    """
    request.app.state.logging.info("Resolve received: hint=%r", body.hint[:80])

    try:
        path = await request.app.state.pipeline.resolve(body.hint, site_base_address=body.site_base_address)
    except (ContentStoreError, ValueError) as e:
        raise _to_http_exception(e)
    return JSONResponse(content=ResolveResponse(hint=body.hint, path=path).model_dump())


@page_router.post(
    "/update",
    dependencies=[Depends(verify_api_key)],
    tags=["Pages"],
)
async def handle_update(request: Request, body: PageRequest) -> JSONResponse:
    """Resolve the target if needed and replace its content.

    Raises:
        HTTPException: 404 if the target or a write address is missing, 422 for bad input, 502 on upstream errors.
    """
    request.app.state.logging.info("Update received: target=%r publish=%s", body.target[:120], body.publish)

    try:
        outcome = await request.app.state.pipeline.run(body)
    except (ContentStoreError, ValueError) as e:
        raise _to_http_exception(e)
    return JSONResponse(content=outcome.model_dump(mode="json"))
