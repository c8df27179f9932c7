"""Truth-table rule repository.

Loads, upserts and deletes rules in the rules table, keeps the table schema
up to date (additive only) and seeds the default rule set.
"""

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, inspect, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from recotool.config import settings
from recotool.core.exceptions import ConfigurationError
from recotool.engine.defaults import default_rules
from recotool.engine.rules import RuleDefinition, TruthRule, order_rules
from recotool.models.reco_rule import RecoRule

logger = structlog.get_logger()

_TIMESTAMP_ATTRS = {"created_at", "updated_at"}


def _row_to_data(row: RecoRule) -> dict:
    data = {
        attr.key: getattr(row, attr.key)
        for attr in inspect(RecoRule).column_attrs
        if attr.key not in _TIMESTAMP_ATTRS
    }
    # Legacy rows may hold NULL where the engine needs a value.
    if data.get("enabled") is None:
        data["enabled"] = True
    if data.get("priority") is None:
        data["priority"] = settings.rules_default_priority
    if data.get("auto_apply") is None:
        data["auto_apply"] = True
    return data


def _definition_to_columns(definition: RuleDefinition) -> dict:
    data = definition.model_dump()
    data["scope"] = definition.scope.value
    data["apply_to"] = definition.apply_to.value
    data["mt_status"] = None
    return data


def _ensure_table(sync_conn) -> list[str]:
    """Create the rules table or add its missing columns. Returns added column names."""
    table = RecoRule.__table__
    inspector = inspect(sync_conn)
    if not inspector.has_table(table.name):
        table.create(sync_conn)
        return []

    existing = {col["name"].lower() for col in inspector.get_columns(table.name)}
    preparer = sync_conn.dialect.identifier_preparer
    added = []
    for column in table.columns:
        if column.name.lower() in existing:
            continue
        if column.primary_key:
            raise ConfigurationError(
                f"rules table {table.name!r} exists without key column {column.name!r}"
            )
        type_sql = column.type.compile(dialect=sync_conn.dialect)
        sync_conn.execute(text(
            f"ALTER TABLE {preparer.quote(table.name)} ADD COLUMN {preparer.quote(column.name)} {type_sql}"
        ))
        added.append(column.name)
    return added


class RuleService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Reads ──────────────────────────────────────────

    async def list_rules(self) -> list[RuleDefinition]:
        """All rules, enabled or not, in evaluation order."""
        try:
            result = await self.db.execute(select(RecoRule))
            rows = list(result.scalars().all())
        except SQLAlchemyError as e:
            raise ConfigurationError(f"rules table unavailable: {e}") from e

        definitions = []
        for row in rows:
            try:
                definitions.append(RuleDefinition.model_validate(_row_to_data(row)))
            except PydanticValidationError as e:
                raise ConfigurationError(f"malformed rule {row.rule_id!r}: {e}") from e
        return sorted(definitions, key=lambda d: (d.priority, d.rule_id.lower()))

    async def load_rules(self) -> list[TruthRule]:
        """Compiled, ordered rule snapshot for one evaluation run."""
        rules = order_rules(TruthRule.compile(d) for d in await self.list_rules())
        logger.info("rules_loaded", count=len(rules), enabled=sum(1 for r in rules if r.enabled))
        return rules

    async def get_rule(self, rule_id: str) -> RuleDefinition | None:
        row = await self.db.get(RecoRule, rule_id)
        if row is None:
            return None
        return RuleDefinition.model_validate(_row_to_data(row))

    # ── Writes ─────────────────────────────────────────

    async def upsert_rule(self, definition: RuleDefinition) -> RuleDefinition:
        """Insert or fully replace the rule with this identifier."""
        columns = _definition_to_columns(definition)
        row = await self.db.get(RecoRule, definition.rule_id)
        created = row is None
        if created:
            row = RecoRule(**columns)
            self.db.add(row)
        else:
            for key, value in columns.items():
                setattr(row, key, value)
        await self.db.flush()

        logger.info("rule_upserted", rule_id=definition.rule_id, created=created)
        return definition

    async def delete_rule(self, rule_id: str) -> int:
        """Delete by identifier; returns the number of rows removed (0 or 1)."""
        result = await self.db.execute(delete(RecoRule).where(RecoRule.rule_id == rule_id))
        await self.db.flush()
        count = result.rowcount or 0
        logger.info("rule_deleted", rule_id=rule_id, count=count)
        return count

    # ── Storage & seeding ──────────────────────────────

    async def ensure_storage_ready(self) -> list[str]:
        """Create the rules table if missing and add any missing optional columns."""
        try:
            conn = await self.db.connection()
            added = await conn.run_sync(_ensure_table)
        except SQLAlchemyError as e:
            raise ConfigurationError(f"cannot prepare rules table: {e}") from e

        for column in added:
            logger.info("rules_storage_column_added", table=RecoRule.__tablename__, column=column)
        logger.info("rules_storage_ready", table=RecoRule.__tablename__, added=len(added))
        return added

    async def seed_default_rules(self) -> int:
        """Upsert the default truth table; returns the number of rules written."""
        await self.ensure_storage_ready()
        count = 0
        for definition in default_rules():
            await self.upsert_rule(definition)
            count += 1
        logger.info("rules_seeded", count=count)
        return count
