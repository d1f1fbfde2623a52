import logging

from fastapi import APIRouter, HTTPException, Request

from mirror_proxy.proxy import handle
from mirror_proxy.utils.exception_logging import log_exception_with_details

router = APIRouter()

logger = logging.getLogger("uvicorn.error")

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


# Register catch-all route for proxying
@router.api_route("/{path:path}", methods=PROXY_METHODS)
async def proxy_all(request: Request, path: str):
    """Catch-all route that resolves the target and proxies the request."""
    config = request.app.state.config
    transport = getattr(request.app.state, "transport", None)
    try:
        return await handle(request, config, transport=transport)
    except HTTPException as e:
        raise e
    except Exception as e:
        log_exception_with_details(logger, "[Proxy]", e)
        raise HTTPException(status_code=500, detail="Internal server error")
