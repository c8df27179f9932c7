"""Truth-table rules API routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from recotool.api.deps import get_db
from recotool.core.exceptions import NotFoundError, ValidationError
from recotool.engine.rules import RuleDefinition, RuleOutputs
from recotool.models.reco_rule import RecoRule
from recotool.schemas.truth_rule import (
    DeleteRuleResult,
    RuleResponse,
    SeedRulesResult,
    StorageReadyResult,
)
from recotool.services.rule_service import RuleService

router = APIRouter()


def _to_response(definition: RuleDefinition) -> RuleResponse:
    return RuleResponse(
        **definition.model_dump(),
        summary=RuleOutputs.from_definition(definition).summary(),
    )


@router.get("", response_model=list[RuleResponse])
async def list_rules(db: AsyncSession = Depends(get_db)):
    """List all rules in evaluation order."""
    service = RuleService(db)
    return [_to_response(d) for d in await service.list_rules()]


@router.get("/{rule_id}", response_model=RuleResponse)
async def get_rule(rule_id: str, db: AsyncSession = Depends(get_db)):
    """Get a single rule by identifier."""
    service = RuleService(db)
    definition = await service.get_rule(rule_id)
    if definition is None:
        raise NotFoundError("Rule")
    return _to_response(definition)


@router.put("/{rule_id}", response_model=RuleResponse)
async def upsert_rule(
    rule_id: str,
    data: RuleDefinition,
    db: AsyncSession = Depends(get_db),
):
    """Insert or fully replace a rule."""
    if data.rule_id != rule_id.strip():
        raise ValidationError("rule_id in body does not match the URL")
    service = RuleService(db)
    return _to_response(await service.upsert_rule(data))


@router.delete("/{rule_id}", response_model=DeleteRuleResult)
async def delete_rule(rule_id: str, db: AsyncSession = Depends(get_db)):
    """Delete a rule; returns how many rows were removed."""
    service = RuleService(db)
    return DeleteRuleResult(deleted=await service.delete_rule(rule_id))


@router.post("/storage", response_model=StorageReadyResult)
async def ensure_storage_ready(db: AsyncSession = Depends(get_db)):
    """Create the rules table or add its missing columns."""
    service = RuleService(db)
    added = await service.ensure_storage_ready()
    return StorageReadyResult(table=RecoRule.__tablename__, added_columns=added)


@router.post("/seed", response_model=SeedRulesResult)
async def seed_default_rules(db: AsyncSession = Depends(get_db)):
    """Upsert the default truth table."""
    service = RuleService(db)
    return SeedRulesResult(count=await service.seed_default_rules())
