"""
Email subscription endpoint.

POST /api/subscribe  {"email": "..."}
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from shared.models.domain import SubscribeRequest

from api.dependencies import get_subscriptions
from api.subscriptions import EMAIL_RE, SubscriptionService

router = APIRouter(prefix="/api", tags=["subscriptions"])


@router.post("/subscribe", response_model=None)
async def subscribe(
    body: SubscribeRequest,
    subscriptions: SubscriptionService = Depends(get_subscriptions),
) -> Any:
    email = (body.email or "").strip()
    if not email:
        return JSONResponse(status_code=400, content={"error": "Email is required."})
    if not EMAIL_RE.match(email):
        return JSONResponse(status_code=400, content={"error": "Invalid email address."})

    sub = await subscriptions.add(email)
    return JSONResponse(
        status_code=201,
        content={"id": str(sub.id), "email": sub.email},
        headers={"Location": f"/api/subscriptions/{sub.id}"},
    )
