"""Normalized event payload decoding and encoding.

Upstream statement parsers hand events over as JSON objects. This module owns
the one mapping between those payloads and domain events so the event store and
the HTTP layer agree on a single wire contract.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from .models import (
    CashMovementEvent,
    CashMovementKind,
    CorporateActionEvent,
    LedgerEvent,
    ReverseStockSplit,
    SpinOff,
    StockSplit,
    SymbolChange,
    TradeEvent,
    TradeSide,
)

EVENT_TYPE_TRADE = "trade"
EVENT_TYPE_CASH_MOVEMENT = "cash_movement"
EVENT_TYPE_CORPORATE_ACTION = "corporate_action"

_ACTION_TYPE_SPLIT = "split"
_ACTION_TYPE_REVERSE_SPLIT = "reverse_split"
_ACTION_TYPE_SYMBOL_CHANGE = "symbol_change"
_ACTION_TYPE_SPIN_OFF = "spin_off"


def domain_event_from_payload(
    event_type: str,
    sequence: int,
    effective_date: date,
    payload: Mapping[str, Any],
) -> LedgerEvent:
    """Decode one normalized event payload into a domain event.

    Args:
        event_type: Event discriminator (`trade`, `cash_movement`, `corporate_action`).
        sequence: Ingestion sequence number.
        effective_date: Event effective date.
        payload: Event-specific JSON payload.

    Returns:
        LedgerEvent: Decoded domain event.

    Raises:
        ValueError: Raised when the event type or payload fields are invalid.
    """

    normalized_event_type = event_type.strip().lower()
    if normalized_event_type == EVENT_TYPE_TRADE:
        return TradeEvent(
            sequence=sequence,
            effective_date=effective_date,
            side=TradeSide(_domain_required_text(payload, "side").upper()),
            symbol=_domain_required_text(payload, "symbol"),
            quantity=_domain_decimal(payload, "quantity"),
            unit_price=_domain_decimal(payload, "unit_price"),
            currency=_domain_required_text(payload, "currency").upper(),
            commission=_domain_decimal(payload, "commission", default=Decimal("0")),
        )

    if normalized_event_type == EVENT_TYPE_CASH_MOVEMENT:
        return CashMovementEvent(
            sequence=sequence,
            effective_date=effective_date,
            kind=CashMovementKind(_domain_required_text(payload, "kind").upper()),
            amount=_domain_decimal(payload, "amount"),
            currency=_domain_required_text(payload, "currency").upper(),
            symbol=_domain_optional_text(payload.get("symbol")),
            description=_domain_optional_text(payload.get("description")) or "",
        )

    if normalized_event_type == EVENT_TYPE_CORPORATE_ACTION:
        return CorporateActionEvent(
            sequence=sequence,
            effective_date=effective_date,
            symbol=_domain_required_text(payload, "symbol"),
            action=_domain_action_from_payload(payload),
        )

    raise ValueError(f"unsupported event_type={event_type}")


def domain_event_to_payload(event: LedgerEvent) -> tuple[str, dict[str, Any]]:
    """Encode one domain event into its normalized payload.

    Args:
        event: Domain event.

    Returns:
        tuple[str, dict[str, Any]]: Event type discriminator and JSON payload.

    Raises:
        TypeError: Raised for unsupported event or action types.
    """

    if isinstance(event, TradeEvent):
        return EVENT_TYPE_TRADE, {
            "side": event.side.value,
            "symbol": event.symbol,
            "quantity": str(event.quantity),
            "unit_price": str(event.unit_price),
            "currency": event.currency,
            "commission": str(event.commission),
        }
    if isinstance(event, CashMovementEvent):
        return EVENT_TYPE_CASH_MOVEMENT, {
            "kind": event.kind.value,
            "amount": str(event.amount),
            "currency": event.currency,
            "symbol": event.symbol,
            "description": event.description,
        }
    if isinstance(event, CorporateActionEvent):
        payload: dict[str, Any] = {"symbol": event.symbol}
        action = event.action
        if isinstance(action, StockSplit):
            payload.update({"action": _ACTION_TYPE_SPLIT, "ratio": str(action.ratio)})
        elif isinstance(action, ReverseStockSplit):
            payload.update(
                {
                    "action": _ACTION_TYPE_REVERSE_SPLIT,
                    "ratio": str(action.ratio),
                    "cash_in_lieu_price": None
                    if action.cash_in_lieu_price is None
                    else str(action.cash_in_lieu_price),
                }
            )
        elif isinstance(action, SymbolChange):
            payload.update(
                {
                    "action": _ACTION_TYPE_SYMBOL_CHANGE,
                    "old_symbol": action.old_symbol,
                    "new_symbol": action.new_symbol,
                }
            )
        elif isinstance(action, SpinOff):
            payload.update(
                {
                    "action": _ACTION_TYPE_SPIN_OFF,
                    "new_security_id": action.new_security_id,
                    "new_symbol": action.new_symbol,
                    "ratio": str(action.ratio),
                    "cost_fraction": str(action.cost_fraction),
                }
            )
        else:
            raise TypeError(f"unsupported corporate action type={type(action).__name__}")
        return EVENT_TYPE_CORPORATE_ACTION, payload

    raise TypeError(f"unsupported event type={type(event).__name__}")


def _domain_action_from_payload(payload: Mapping[str, Any]):
    """Decode the action variant of a corporate-action payload.

    Args:
        payload: Corporate-action JSON payload.

    Returns:
        CorporateAction: Decoded action variant.

    Raises:
        ValueError: Raised when the action discriminator is unsupported.
    """

    action_type = _domain_required_text(payload, "action").lower()
    if action_type == _ACTION_TYPE_SPLIT:
        return StockSplit(ratio=_domain_decimal(payload, "ratio"))
    if action_type == _ACTION_TYPE_REVERSE_SPLIT:
        raw_price = payload.get("cash_in_lieu_price")
        return ReverseStockSplit(
            ratio=_domain_decimal(payload, "ratio"),
            cash_in_lieu_price=None if raw_price is None else _domain_decimal(payload, "cash_in_lieu_price"),
        )
    if action_type == _ACTION_TYPE_SYMBOL_CHANGE:
        return SymbolChange(
            old_symbol=_domain_required_text(payload, "old_symbol"),
            new_symbol=_domain_required_text(payload, "new_symbol"),
        )
    if action_type == _ACTION_TYPE_SPIN_OFF:
        return SpinOff(
            new_security_id=_domain_required_text(payload, "new_security_id"),
            new_symbol=_domain_required_text(payload, "new_symbol"),
            ratio=_domain_decimal(payload, "ratio"),
            cost_fraction=_domain_decimal(payload, "cost_fraction"),
        )
    raise ValueError(f"unsupported corporate action={action_type}")


def _domain_optional_text(value: object | None) -> str | None:
    if not isinstance(value, str):
        return None
    normalized_value = value.strip()
    return normalized_value or None


def _domain_required_text(payload: Mapping[str, Any], field_name: str) -> str:
    normalized_value = _domain_optional_text(payload.get(field_name))
    if normalized_value is None:
        raise ValueError(f"{field_name} must be a non-empty string")
    return normalized_value


def _domain_decimal(payload: Mapping[str, Any], field_name: str, default: Decimal | None = None) -> Decimal:
    raw_value = payload.get(field_name)
    if raw_value is None:
        if default is not None:
            return default
        raise ValueError(f"{field_name} is required")
    if isinstance(raw_value, float):
        raise ValueError(f"{field_name} must be a decimal string, not float")
    try:
        parsed_value = Decimal(str(raw_value).strip())
    except InvalidOperation as error:
        raise ValueError(f"invalid decimal {field_name}={raw_value}") from error
    if not parsed_value.is_finite():
        raise ValueError(f"{field_name} must be finite")
    return parsed_value


__all__ = [
    "EVENT_TYPE_TRADE",
    "EVENT_TYPE_CASH_MOVEMENT",
    "EVENT_TYPE_CORPORATE_ACTION",
    "domain_event_from_payload",
    "domain_event_to_payload",
]
