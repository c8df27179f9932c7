"""Reconciliation classification API routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from recotool.api.deps import get_db
from recotool.core.exceptions import ValidationError
from recotool.engine.rules import RuleScope
from recotool.schemas.reconciliation import (
    BatchResultResponse,
    DebugResponse,
    LineOutcomeResponse,
    PreviewResponse,
    RunRulesRequest,
)
from recotool.services.reconciliation_service import ReconciliationService

router = APIRouter()


@router.post("/run-rules", response_model=BatchResultResponse)
async def run_rules_now(data: RunRulesRequest, db: AsyncSession = Depends(get_db)):
    """Reclassify the given lines now."""
    service = ReconciliationService(db)
    result = await service.run_rules_now(data.line_ids, data.scope)
    return BatchResultResponse.from_result(result)


@router.post("/import/{country_id}", response_model=BatchResultResponse)
async def apply_import_rules(country_id: str, db: AsyncSession = Depends(get_db)):
    """Run the Import-scoped rules over every live line of a country."""
    service = ReconciliationService(db)
    result = await service.apply_import_rules(country_id)
    return BatchResultResponse.from_result(result)


@router.post("/{line_id}/reclassify", response_model=LineOutcomeResponse)
async def reclassify_line(line_id: str, db: AsyncSession = Depends(get_db)):
    """Run the Edit-scoped rules on one line after it was edited."""
    service = ReconciliationService(db)
    return LineOutcomeResponse.from_outcome(await service.reclassify_line(line_id))


@router.get("/{line_id}/debug", response_model=DebugResponse)
async def evaluate_for_debug(
    line_id: str,
    scope: RuleScope = RuleScope.EDIT,
    db: AsyncSession = Depends(get_db),
):
    """Evaluation context and full per-rule trace, without applying anything."""
    if scope == RuleScope.BOTH:
        raise ValidationError("scope must be Import or Edit")
    service = ReconciliationService(db)
    return DebugResponse.from_report(await service.evaluate_for_debug(line_id, scope))


@router.get("/{line_id}/preview", response_model=PreviewResponse)
async def preview_rules_for_edit(line_id: str, db: AsyncSession = Depends(get_db)):
    """Which Edit-scoped rule would fire on this line, and its outputs."""
    service = ReconciliationService(db)
    context, evaluation = await service.preview_rules_for_edit(line_id)
    return PreviewResponse.from_evaluation(context, evaluation)
