"""Risk check, content analysis and community report routes."""

import math
from datetime import timedelta

from fastapi import APIRouter, Depends, Query, status
from fraudwatch_shared.schemas import (
    CategoryCount,
    CombinedRisk,
    ContentRiskResult,
    ContentType,
    EntityType,
    FraudReportRecord,
    ReportCategory,
    RiskResult,
    UserProfile,
    utcnow,
)
from pydantic import BaseModel, Field

from fraudwatch_api.auth.jwt import get_current_user, get_current_user_optional
from fraudwatch_api.errors import ValidationError
from fraudwatch_api.security.normalizer import detect_entity_type, normalize_entity
from fraudwatch_api.services import Services, get_services

router = APIRouter(tags=["Risk"])


# =============================================================================
# Request/Response Models
# =============================================================================


class CheckRiskRequest(BaseModel):
    """Request body for an entity risk check."""

    entity: str = Field(..., max_length=255)
    entity_type: EntityType | None = None


class AnalyzeContentRequest(BaseModel):
    """Request body for content analysis."""

    content: str = Field(..., max_length=10000)
    content_type: ContentType = ContentType.MESSAGE
    sender_entity: str | None = Field(None, max_length=255)


class AnalyzeContentResponse(BaseModel):
    """Content verdict, the sender's verdict if given, and the merge of both."""

    content_analysis: ContentRiskResult
    entity_risk: RiskResult | None = None
    combined_risk: CombinedRisk


class ReportRequest(BaseModel):
    """Request body for filing a fraud report."""

    target_entity: str = Field(..., max_length=255)
    entity_type: EntityType | None = None
    category: ReportCategory
    description: str = Field("", max_length=2000)


class ReportSearchResponse(BaseModel):
    """Reports whose target contains the query."""

    query: str
    count: int
    results: list[FraudReportRecord]


class MyReportsResponse(BaseModel):
    """One page of the caller's own reports, newest first."""

    reports: list[FraudReportRecord]
    page: int
    limit: int
    total: int
    pages: int


class StatsOverviewResponse(BaseModel):
    """Community-wide totals."""

    total_reports: int
    recent_reports: int
    total_users: int
    blocked_entities: int
    top_categories: list[CategoryCount]


# =============================================================================
# Routes
# =============================================================================


@router.post("/check-risk", response_model=RiskResult)
async def check_risk(
    request: CheckRiskRequest,
    user: UserProfile | None = Depends(get_current_user_optional),
    services: Services = Depends(get_services),
):
    """Score an entity from recent community reports.

    Authenticated callers checking a high-risk entity also receive a
    threat alert.
    """
    return await services.risk.check(
        request.entity,
        user_id=user.id if user else None,
        entity_type=request.entity_type,
    )


@router.get("/check-risk/{entity}", response_model=RiskResult)
async def check_risk_by_path(
    entity: str,
    user: UserProfile | None = Depends(get_current_user_optional),
    services: Services = Depends(get_services),
):
    """Same as POST /check-risk with the entity in the path."""
    return await services.risk.check(entity, user_id=user.id if user else None)


@router.post("/analyze-content", response_model=AnalyzeContentResponse)
async def analyze_content(
    request: AnalyzeContentRequest,
    services: Services = Depends(get_services),
):
    """Score message text, optionally together with its sender."""
    if not request.content.strip():
        raise ValidationError("Content is required for analysis")
    content_result = services.content.analyze(request.content, request.content_type)

    entity_risk = None
    if request.sender_entity:
        entity_risk = await services.risk.check(request.sender_entity)

    return AnalyzeContentResponse(
        content_analysis=content_result,
        entity_risk=entity_risk,
        combined_risk=services.content.combine(content_result, entity_risk),
    )


@router.post(
    "/fraud/report", response_model=FraudReportRecord, status_code=status.HTTP_201_CREATED
)
async def file_report(
    request: ReportRequest,
    user: UserProfile = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """File a community report against an entity."""
    target = normalize_entity(request.target_entity)
    report = FraudReportRecord(
        target_entity=target,
        entity_type=request.entity_type or detect_entity_type(target),
        category=request.category.value,
        description=request.description,
        reporter_id=user.id,
    )
    return await services.storage.reports.add_report(report)


@router.get("/reports/search", response_model=ReportSearchResponse)
async def search_reports(
    q: str = Query(..., min_length=1, max_length=255),
    limit: int = Query(20, ge=1, le=100),
    services: Services = Depends(get_services),
):
    """Case-insensitive substring search over reported entities."""
    fragment = q.strip()
    results = await services.storage.reports.search_reports(fragment, limit=limit)
    return ReportSearchResponse(query=fragment, count=len(results), results=results)


@router.get("/fraud/my-reports", response_model=MyReportsResponse)
async def my_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: UserProfile = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Reports filed by the caller."""
    reports = await services.storage.reports.list_reports_by_reporter(
        user.id, offset=(page - 1) * limit, limit=limit
    )
    total = await services.storage.reports.count_reports_by_reporter(user.id)
    return MyReportsResponse(
        reports=reports,
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit),
    )


@router.get("/stats/overview", response_model=StatsOverviewResponse)
async def stats_overview(services: Services = Depends(get_services)):
    """Report counts, the most reported categories, users and blocks.

    Recent reports are those inside the risk scoring window.
    """
    since = utcnow() - timedelta(days=services.settings.risk.window_days)
    stats = await services.storage.reports.report_stats(since)
    return StatsOverviewResponse(
        total_reports=stats.total_reports,
        recent_reports=stats.recent_reports,
        total_users=await services.storage.users.count_users(),
        blocked_entities=await services.storage.users.count_blocked_entities(),
        top_categories=stats.top_categories,
    )
