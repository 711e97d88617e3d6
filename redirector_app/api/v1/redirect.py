from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import RedirectResponse

from redirector_app.dependencies import get_client_ip, get_redirect_service
from redirector_app.services.redirect_service import RedirectService

router = APIRouter(tags=["redirect"])


@router.get("/{slug:path}", include_in_schema=False)
async def redirect(
    slug: str,
    request: Request,
    background_tasks: BackgroundTasks,
    redirect_service: RedirectService = Depends(get_redirect_service)
):
    """
    Redirect a visitor to the destination registered for the path.

    The hit is published to the hit queue after the response went out and
    stored later by the hit worker, so the visitor never waits for either.
    """
    resolution = await redirect_service.resolve(slug, query_string=request.url.query)
    background_tasks.add_task(
        redirect_service.record_hit,
        resolution,
        client_ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return RedirectResponse(url=resolution.url, status_code=resolution.status_code)
