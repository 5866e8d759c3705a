from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query, Request
from sqlalchemy.orm import Session

from analysis.tasks.process import ContentAlreadyComplete, InvalidContent, process_content_core
from billing.accounts import handle_webhook_event, is_pro, set_pro_status
from billing.client import (
    BillingError,
    BillingNotConfigured,
    InvalidSignature,
    StripeClient,
    verify_webhook,
)
from ingestion.connectors.base import TranscriptUnavailable
from ingestion.repositories.content import ContentNotFound
from ingestion.services.inflight import ProcessingInProgress
from ingestion.tasks.ingest import InvalidVideoUrl, ingest_video_core
from publish.digest import build_daily_digest

from . import dashboard
from .access import DayLocked
from .database import session_dependency
from .models import (
    CheckoutRequest,
    CheckoutResponse,
    ContentDetail,
    DashboardOverview,
    DayDetail,
    DigestResponse,
    IngestRequest,
    IngestResponse,
    PortalRequest,
    PortalResponse,
    ProcessRequest,
    ProcessResponse,
    ProStatusResponse,
    ProStatusUpdate,
    SentimentFilter,
    SortBy,
    TickerDetail,
    Timeframe,
    TrendingResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

SessionDep = Annotated[Session, Depends(session_dependency)]

NO_TRANSCRIPT_MESSAGE = (
    "No transcript available for this video. Captions may be disabled or the video may be too new."
)


async def current_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str | None:
    """Caller id forwarded by the identity proxy; None for anonymous callers."""
    return x_user_id or None


async def current_is_pro(
    user_id: Annotated[str | None, Depends(current_user_id)],
    session: SessionDep,
) -> bool:
    return is_pro(session, user_id)


IsProDep = Annotated[bool, Depends(current_is_pro)]


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _process_in_background(content_id: str) -> None:
    try:
        await process_content_core(content_id)
    except Exception as exc:  # noqa: BLE001 - the record already carries the error
        logger.warning("ingest.background_process_failed", extra={"content_id": content_id, "error": str(exc)})


@router.post("/youtube/ingest", response_model=IngestResponse)
async def ingest_route(payload: IngestRequest, background_tasks: BackgroundTasks) -> IngestResponse:
    try:
        outcome = await ingest_video_core(payload.youtube_url)
    except InvalidVideoUrl as exc:
        raise HTTPException(status_code=400, detail="Invalid YouTube URL") from exc
    except TranscriptUnavailable as exc:
        raise HTTPException(status_code=422, detail=NO_TRANSCRIPT_MESSAGE) from exc
    except Exception as exc:
        logger.exception("ingest.failed", extra={"youtube_url": payload.youtube_url})
        raise HTTPException(status_code=500, detail=str(exc) or "Failed to ingest video") from exc
    background_tasks.add_task(_process_in_background, outcome.content_id)
    return IngestResponse(**outcome.as_dict())


@router.post("/process-content", response_model=ProcessResponse)
async def process_content_route(payload: ProcessRequest) -> ProcessResponse:
    try:
        outcome = await process_content_core(payload.content_id)
    except ContentNotFound as exc:
        raise HTTPException(status_code=404, detail="Content not found") from exc
    except InvalidContent as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (ProcessingInProgress, ContentAlreadyComplete) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except TranscriptUnavailable as exc:
        raise HTTPException(status_code=422, detail=NO_TRANSCRIPT_MESSAGE) from exc
    except Exception as exc:
        logger.exception("process.route_failed", extra={"content_id": payload.content_id})
        raise HTTPException(status_code=500, detail=str(exc) or "Failed to process content") from exc
    return ProcessResponse(
        content_id=outcome.content_id,
        status=outcome.status,
        mentions=outcome.mentions,
        highlights=outcome.highlights,
    )


@router.get("/content/{content_id}", response_model=ContentDetail)
async def content_detail_route(content_id: str, session: SessionDep, pro: IsProDep) -> ContentDetail:
    try:
        return dashboard.content_detail(session, content_id, is_pro=pro, now=_now())
    except ContentNotFound as exc:
        raise HTTPException(status_code=404, detail="Content not found") from exc
    except DayLocked as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc


@router.get("/dashboard", response_model=DashboardOverview)
async def dashboard_route(session: SessionDep, pro: IsProDep) -> DashboardOverview:
    return dashboard.dashboard_overview(session, is_pro=pro, now=_now())


@router.get("/dashboard/day/{day}", response_model=DayDetail)
async def day_detail_route(day: date, session: SessionDep, pro: IsProDep) -> DayDetail:
    try:
        return dashboard.day_detail(session, day, is_pro=pro, now=_now())
    except DayLocked as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc


@router.get("/dashboard/trending", response_model=TrendingResponse)
async def trending_route(
    session: SessionDep,
    pro: IsProDep,
    timeframe: Timeframe = Query("7d"),
    sort: SortBy = Query("count"),
    sentiment: SentimentFilter = Query("all"),
) -> TrendingResponse:
    return dashboard.trending(
        session, timeframe=timeframe, sort=sort, sentiment=sentiment, is_pro=pro, now=_now()
    )


@router.get("/dashboard/ticker/{ticker}", response_model=TickerDetail)
async def ticker_detail_route(ticker: str, session: SessionDep, pro: IsProDep) -> TickerDetail:
    return dashboard.ticker_detail(session, ticker, is_pro=pro, now=_now())


@router.get("/digest", response_model=DigestResponse)
async def digest_route(session: SessionDep, pro: IsProDep) -> DigestResponse:
    return DigestResponse(**build_daily_digest(session, is_pro=pro, now=_now()).as_dict())


@router.post("/billing/checkout", response_model=CheckoutResponse)
async def checkout_route(payload: CheckoutRequest) -> CheckoutResponse:
    try:
        result = await StripeClient().create_checkout_session(
            email=payload.email, user_id=payload.user_id, plan_type=payload.plan_type
        )
    except BillingNotConfigured as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except BillingError as exc:
        logger.warning("billing.checkout_failed", extra={"error": str(exc)})
        raise HTTPException(status_code=500, detail="Failed to create checkout session") from exc
    return CheckoutResponse(session_id=result["sessionId"], url=result["url"])


@router.post("/billing/portal", response_model=PortalResponse)
async def portal_route(payload: PortalRequest) -> PortalResponse:
    try:
        result = await StripeClient().create_portal_session(customer_id=payload.customer_id)
    except BillingNotConfigured as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except BillingError as exc:
        logger.warning("billing.portal_failed", extra={"error": str(exc)})
        raise HTTPException(status_code=500, detail="Failed to create portal session") from exc
    return PortalResponse(url=result["url"])


@router.post("/billing/webhook")
async def webhook_route(
    request: Request,
    session: SessionDep,
    stripe_signature: Annotated[str | None, Header()] = None,
) -> dict[str, object]:
    payload = await request.body()
    try:
        event = verify_webhook(payload, stripe_signature)
    except BillingNotConfigured as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except InvalidSignature as exc:
        raise HTTPException(status_code=400, detail=f"Invalid signature: {exc}") from exc
    uid = handle_webhook_event(session, event)
    return {"received": True, "uid": uid}


@router.put("/users/{uid}/pro", response_model=ProStatusResponse)
async def set_pro_route(uid: str, payload: ProStatusUpdate, session: SessionDep) -> ProStatusResponse:
    user = set_pro_status(session, uid, payload.is_pro)
    return ProStatusResponse(uid=user.uid, is_pro=user.is_pro, pro_since=user.pro_since, plan_type=user.plan_type)
