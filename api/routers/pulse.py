from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from core.errors import InvalidQueryError, NoResultsError, RateLimitExceeded

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pulse", tags=["pulse"])

_CLIENT_IP_HEADERS = ("x-forwarded-for", "cf-connecting-ip", "x-real-ip")


class PulseRequest(BaseModel):
    query: str = ""


def client_ip(request: Request) -> str:
    for header in _CLIENT_IP_HEADERS:
        value = request.headers.get(header)
        if value:
            return value.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


@router.post("")
async def create_pulse(body: PulseRequest, request: Request):
    service = request.app.state.service
    try:
        result = await service.get_or_create(body.query, client_ip(request))
    except InvalidQueryError as e:
        raise HTTPException(400, str(e))
    except RateLimitExceeded as e:
        raise HTTPException(429, str(e), headers={"Retry-After": str(e.retry_after)})
    except NoResultsError as e:
        raise HTTPException(404, str(e))
    except Exception:
        log.exception("Failed to generate report for '%s'", body.query)
        raise HTTPException(500, "Failed to generate report")

    return {
        "slug": result.report.slug,
        "cached": result.cached,
        "report": result.report.to_dict(),
    }


@router.get("/{slug}")
async def get_pulse(slug: str, request: Request):
    service = request.app.state.service
    try:
        report = await service.get(slug)
    except InvalidQueryError as e:
        raise HTTPException(400, str(e))
    except Exception:
        log.exception("Failed to load report '%s'", slug)
        raise HTTPException(500, "Failed to load report")

    if report is None:
        raise HTTPException(404, f"No report for '{slug}'")
    return report.to_dict()
