"""Truth-table rule model.

A rule has a flat, persisted shape (``RuleDefinition``: one attribute per
storage column) and a compiled shape (``TruthRule``: conditions parsed into
condition variants, outputs grouped). Only the compiled shape is evaluated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from recotool.engine.conditions import (
    WILDCARD_TOKEN,
    Condition,
    equals_condition,
    flag_condition,
    is_wildcard_text,
    range_condition,
    text_condition,
)
from recotool.engine.lines import Referentials

DEFAULT_PRIORITY = 100


class RuleScope(str, Enum):
    IMPORT = "Import"
    EDIT = "Edit"
    BOTH = "Both"


class ApplyTarget(str, Enum):
    SELF = "Self"
    COUNTERPART = "Counterpart"
    BOTH = "Both"


def _parse_enum(enum_cls: type[Enum], raw, default):
    if raw is None:
        return default
    if isinstance(raw, enum_cls):
        return raw
    text = str(raw).strip()
    if not text:
        return default
    for member in enum_cls:
        if member.value.lower() == text.lower() or member.name.lower() == text.lower():
            return member
    raise ValueError(f"Unknown {enum_cls.__name__}: {raw!r}")


# Legacy textual MT status condition → MTStatusAcked
_MT_STATUS_TOKENS: dict[str, bool | None] = {
    "ACKED": True,
    "ACK": True,
    "NOT_ACKED": False,
    "NOTACKED": False,
    "NACK": False,
    "*": None,
    "WILDCARD": None,
}


class RuleDefinition(BaseModel):
    """One row of the truth table, as stored and as exchanged over the API."""

    model_config = {"frozen": True, "from_attributes": True}

    rule_id: str = Field(min_length=1, max_length=255)
    enabled: bool = True
    priority: int = DEFAULT_PRIORITY
    scope: RuleScope = RuleScope.BOTH

    # Conditions
    account_side: str = WILDCARD_TOKEN  # P, R or *
    booking: str | None = None  # country codes, e.g. "FR;DE"
    guarantee_type: str | None = None  # e.g. "ISSUANCE;REISSUANCE"
    transaction_type: str | None = None  # e.g. "INCOMING_PAYMENT"
    sign: str = WILDCARD_TOKEN  # C, D or *
    has_dwings_link: bool | None = None
    is_grouped: bool | None = None
    is_amount_match: bool | None = None
    mt_status_acked: bool | None = None
    comm_id_email: bool | None = None
    bgi_status_initiated: bool | None = None
    trigger_date_is_null: bool | None = None
    days_since_trigger_min: int | None = None
    days_since_trigger_max: int | None = None
    is_transitory: bool | None = None
    operation_days_ago_min: int | None = None
    operation_days_ago_max: int | None = None
    is_matched: bool | None = None
    has_manual_match: bool | None = None
    is_first_request: bool | None = None
    days_since_reminder_min: int | None = None
    days_since_reminder_max: int | None = None
    current_action_id: int | None = None
    payment_request_status: str | None = None

    # Outputs
    output_action_id: int | None = None
    output_kpi_id: int | None = None
    output_incident_type_id: int | None = None
    output_risky_item: bool | None = None
    output_reason_non_risky_id: int | None = None
    output_to_remind: bool | None = None
    output_to_remind_days: int | None = None
    output_first_claim_today: bool | None = None

    apply_to: ApplyTarget = ApplyTarget.SELF
    auto_apply: bool = True
    message: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_mt_status(cls, data):
        if isinstance(data, dict) and "mt_status" in data:
            data = dict(data)
            raw = data.pop("mt_status")
            if data.get("mt_status_acked") is None and raw is not None:
                token = str(raw).strip().upper()
                if token and token not in _MT_STATUS_TOKENS:
                    raise ValueError(f"Unknown MT status condition: {raw!r}")
                data["mt_status_acked"] = _MT_STATUS_TOKENS.get(token)
        return data

    @field_validator("rule_id")
    @classmethod
    def _strip_rule_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("rule_id must not be blank")
        return value

    @field_validator("scope", mode="before")
    @classmethod
    def _parse_scope(cls, value):
        return _parse_enum(RuleScope, value, RuleScope.BOTH)

    @field_validator("apply_to", mode="before")
    @classmethod
    def _parse_apply_to(cls, value):
        return _parse_enum(ApplyTarget, value, ApplyTarget.SELF)

    @field_validator("account_side", mode="before")
    @classmethod
    def _parse_account_side(cls, value):
        if value is None or is_wildcard_text(str(value)):
            return WILDCARD_TOKEN
        side = str(value).strip().upper()
        if side not in ("P", "R"):
            raise ValueError("account_side must be 'P', 'R' or '*'")
        return side

    @field_validator("sign", mode="before")
    @classmethod
    def _parse_sign(cls, value):
        if value is None or is_wildcard_text(str(value)):
            return WILDCARD_TOKEN
        sign = str(value).strip().upper()
        if sign not in ("C", "D"):
            raise ValueError("sign must be 'C', 'D' or '*'")
        return sign

    @field_validator(
        "booking", "guarantee_type", "transaction_type", "payment_request_status", "message",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def has_outputs(self) -> bool:
        return any(
            value is not None
            for value in (
                self.output_action_id,
                self.output_kpi_id,
                self.output_incident_type_id,
                self.output_risky_item,
                self.output_reason_non_risky_id,
                self.output_to_remind,
                self.output_to_remind_days,
                self.output_first_claim_today,
            )
        )


@dataclass(frozen=True)
class RuleOutputs:
    action_id: int | None = None
    kpi_id: int | None = None
    incident_type_id: int | None = None
    risky_item: bool | None = None
    reason_non_risky_id: int | None = None
    to_remind: bool | None = None
    to_remind_days: int | None = None
    first_claim_today: bool | None = None

    @classmethod
    def from_definition(cls, definition: RuleDefinition) -> RuleOutputs:
        return cls(
            action_id=definition.output_action_id,
            kpi_id=definition.output_kpi_id,
            incident_type_id=definition.output_incident_type_id,
            risky_item=definition.output_risky_item,
            reason_non_risky_id=definition.output_reason_non_risky_id,
            to_remind=definition.output_to_remind,
            to_remind_days=definition.output_to_remind_days,
            first_claim_today=definition.output_first_claim_today,
        )

    def summary(self, referentials: Referentials | None = None) -> str:
        """Compact human-readable list of the outputs this rule sets.

        With ``referentials``, catalog ids are followed by their display name,
        e.g. ``Action=7 (Investigate)``.
        """
        def named(label: str, value: int, name: str | None) -> str:
            return f"{label}={value} ({name})" if name else f"{label}={value}"

        parts = []
        if self.action_id is not None:
            name = referentials.action_name(self.action_id) if referentials else None
            parts.append(named("Action", self.action_id, name))
        if self.kpi_id is not None:
            name = referentials.kpi_name(self.kpi_id) if referentials else None
            parts.append(named("KPI", self.kpi_id, name))
        if self.incident_type_id is not None:
            name = referentials.incident_type_name(self.incident_type_id) if referentials else None
            parts.append(named("IncidentType", self.incident_type_id, name))
        if self.risky_item is not None:
            parts.append(f"RiskyItem={self.risky_item}")
        if self.reason_non_risky_id is not None:
            parts.append(f"ReasonNonRisky={self.reason_non_risky_id}")
        if self.to_remind is not None:
            parts.append(f"ToRemind={self.to_remind}")
        if self.to_remind_days is not None:
            parts.append(f"ToRemindDays={self.to_remind_days}")
        if self.first_claim_today:
            parts.append("FirstClaimDate=Today")
        return "; ".join(parts)


@dataclass(frozen=True)
class RuleCondition:
    """A compiled condition bound to the context attribute it reads."""
    field: str
    context_attr: str
    condition: Condition


# (display name, context attribute) in evaluation order.
CONDITION_FIELDS: tuple[tuple[str, str], ...] = (
    ("AccountSide", "account_side"),
    ("Booking", "country_id"),
    ("GuaranteeType", "guarantee_type"),
    ("TransactionType", "transaction_type"),
    ("HasDwingsLink", "has_dwings_link"),
    ("IsGrouped", "is_grouped"),
    ("IsAmountMatch", "is_amount_match"),
    ("Sign", "sign"),
    ("MTStatusAcked", "is_mt_acked"),
    ("CommIdEmail", "has_comm_id_email"),
    ("BgiStatusInitiated", "is_bgi_initiated"),
    ("TriggerDateIsNull", "trigger_date_is_null"),
    ("DaysSinceTrigger", "days_since_trigger"),
    ("IsTransitory", "is_transitory"),
    ("OperationDaysAgo", "operation_days_ago"),
    ("IsMatched", "is_matched"),
    ("HasManualMatch", "has_manual_match"),
    ("IsFirstRequest", "is_first_request"),
    ("DaysSinceReminder", "days_since_reminder"),
    ("CurrentActionId", "current_action_id"),
    ("PaymentRequestStatus", "payment_request_status"),
)


def _compile_conditions(d: RuleDefinition) -> tuple[RuleCondition, ...]:
    compiled = {
        "AccountSide": text_condition(d.account_side),
        "Booking": text_condition(d.booking),
        "GuaranteeType": text_condition(d.guarantee_type),
        "TransactionType": text_condition(d.transaction_type),
        "HasDwingsLink": flag_condition(d.has_dwings_link),
        "IsGrouped": flag_condition(d.is_grouped),
        "IsAmountMatch": flag_condition(d.is_amount_match),
        "Sign": text_condition(d.sign),
        "MTStatusAcked": flag_condition(d.mt_status_acked),
        "CommIdEmail": flag_condition(d.comm_id_email),
        "BgiStatusInitiated": flag_condition(d.bgi_status_initiated),
        "TriggerDateIsNull": flag_condition(d.trigger_date_is_null),
        "DaysSinceTrigger": range_condition(d.days_since_trigger_min, d.days_since_trigger_max),
        "IsTransitory": flag_condition(d.is_transitory),
        "OperationDaysAgo": range_condition(d.operation_days_ago_min, d.operation_days_ago_max),
        "IsMatched": flag_condition(d.is_matched),
        "HasManualMatch": flag_condition(d.has_manual_match),
        "IsFirstRequest": flag_condition(d.is_first_request),
        "DaysSinceReminder": range_condition(d.days_since_reminder_min, d.days_since_reminder_max),
        "CurrentActionId": equals_condition(d.current_action_id),
        "PaymentRequestStatus": text_condition(d.payment_request_status),
    }
    return tuple(
        RuleCondition(name, attr, compiled[name]) for name, attr in CONDITION_FIELDS
    )


@dataclass(frozen=True)
class TruthRule:
    """A compiled, immutable rule ready for evaluation."""
    definition: RuleDefinition
    conditions: tuple[RuleCondition, ...] = field(repr=False)
    outputs: RuleOutputs

    @classmethod
    def compile(cls, definition: RuleDefinition) -> TruthRule:
        return cls(
            definition=definition,
            conditions=_compile_conditions(definition),
            outputs=RuleOutputs.from_definition(definition),
        )

    @classmethod
    def of(cls, **fields) -> TruthRule:
        """Shorthand: build and compile a rule from keyword fields."""
        return cls.compile(RuleDefinition(**fields))

    @property
    def rule_id(self) -> str:
        return self.definition.rule_id

    @property
    def priority(self) -> int:
        return self.definition.priority

    @property
    def enabled(self) -> bool:
        return self.definition.enabled

    @property
    def scope(self) -> RuleScope:
        return self.definition.scope

    @property
    def apply_to(self) -> ApplyTarget:
        return self.definition.apply_to

    @property
    def auto_apply(self) -> bool:
        return self.definition.auto_apply

    @property
    def message(self) -> str | None:
        return self.definition.message

    def declared_conditions(self) -> tuple[RuleCondition, ...]:
        return tuple(c for c in self.conditions if c.condition.declared)

    def is_eligible(self, scope: RuleScope) -> bool:
        return self.enabled and self.scope in (RuleScope.BOTH, scope)


def order_rules(rules) -> list[TruthRule]:
    """Priority ascending, ties by case-insensitive rule id."""
    return sorted(rules, key=lambda r: (r.priority, r.rule_id.lower()))
