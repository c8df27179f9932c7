"""Referential loader: countries and user-field catalogs as engine ``Referentials``."""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from recotool.config import settings
from recotool.engine.lines import CountryAccounts, Referentials
from recotool.models.referential import Country, UserField

logger = structlog.get_logger()


class ReferentialService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def load(self) -> Referentials:
        result = await self.db.execute(select(Country))
        countries = {
            c.id: CountryAccounts(
                country_id=c.id,
                pivot_account_id=c.pivot_account_id,
                receivable_account_id=c.receivable_account_id,
            )
            for c in result.scalars().all()
        }

        result = await self.db.execute(select(UserField))
        catalogs: dict[str, dict[int, str]] = {
            UserField.ACTION: {},
            UserField.KPI: {},
            UserField.INCIDENT_TYPE: {},
        }
        for field in result.scalars().all():
            catalog = catalogs.get(field.category)
            if catalog is not None:
                catalog[field.id] = field.name

        actions = catalogs[UserField.ACTION]
        na_names = settings.na_action_names
        na_action_ids = frozenset(
            action_id for action_id, name in actions.items()
            if name and name.strip().upper() in na_names
        )

        logger.debug(
            "referentials_loaded",
            countries=len(countries),
            actions=len(actions),
            na_actions=sorted(na_action_ids),
        )
        return Referentials(
            countries=countries,
            actions=actions,
            kpis=catalogs[UserField.KPI],
            incident_types=catalogs[UserField.INCIDENT_TYPE],
            na_action_ids=na_action_ids,
        )
