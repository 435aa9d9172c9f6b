"""Cross-origin proxy so the simulated app can reach remote hosts."""

import httpx
from fastapi import APIRouter, Request, HTTPException
from fastapi.responses import Response

from ...utils.logger import get_logger

logger = get_logger("api.xhr_proxy")

router = APIRouter(tags=["xhr_proxy"])

# Hop-by-hop and encoding headers must not be forwarded as-is
_SKIPPED_RESPONSE_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}


@router.api_route("/xhr_proxy", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
async def xhr_proxy(request: Request, rurl: str = ""):
    """Forward the request to ``rurl`` and relay the response."""
    if not rurl.startswith(("http://", "https://")):
        raise HTTPException(400, "rurl must be an absolute http(s) URL")

    headers = {
        k: v for k, v in request.headers.items()
        if k.lower() not in ("host", "origin", "referer", "content-length")
    }
    body = await request.body()

    transport = getattr(request.app.state, "proxy_transport", None)
    try:
        async with httpx.AsyncClient(transport=transport, timeout=httpx.Timeout(30.0)) as client:
            upstream = await client.request(request.method, rurl, headers=headers, content=body or None)
    except httpx.HTTPError as e:
        logger.warning(f"Proxy request to {rurl} failed: {e}")
        raise HTTPException(502, f"Proxy request failed: {e}")

    response_headers = {
        k: v for k, v in upstream.headers.items()
        if k.lower() not in _SKIPPED_RESPONSE_HEADERS
    }
    return Response(content=upstream.content, status_code=upstream.status_code, headers=response_headers)
