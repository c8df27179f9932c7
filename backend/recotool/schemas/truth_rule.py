"""Truth-table rule schemas."""

from pydantic import BaseModel

from recotool.engine.rules import RuleDefinition


class RuleResponse(RuleDefinition):
    summary: str | None = None


class DeleteRuleResult(BaseModel):
    deleted: int


class SeedRulesResult(BaseModel):
    count: int


class StorageReadyResult(BaseModel):
    table: str
    added_columns: list[str]
