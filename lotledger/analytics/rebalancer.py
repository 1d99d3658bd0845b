"""Whole-share rebalancing suggestions from positions, prices and target weights."""

from __future__ import annotations

import logging
from decimal import ROUND_FLOOR, Decimal
from typing import Mapping

from lotledger.ledger import LotState

from .interfaces import OrderSide, OrderSuggestion, RebalanceConstraints

logger = logging.getLogger(__name__)


def rebalance(
    current_positions: Mapping[str, Decimal],
    target_weights: Mapping[str, Decimal],
    prices: Mapping[str, Decimal],
    constraints: RebalanceConstraints | None = None,
) -> list[OrderSuggestion]:
    """Propose whole-share orders moving a portfolio toward target weights.

    Portfolio value is held cash plus the market value of every position.
    Over-weight positions are sold down to whole shares without crossing the
    target. Under-weight positions are bought with the available cash: each is
    first filled to the whole-share floor of its (cash-scaled) deficit, then
    single shares are added while one more share still reduces the absolute
    deviation from target. Among equally good candidates the lowest security id
    wins, so the output is deterministic. Orders worth less than the minimum
    trade value are never placed: a skipped sell funds no buys, and cash from a
    skipped buy is spent again on the remaining candidates.

    Args:
        current_positions: Held quantity keyed by security identity.
        target_weights: Target portfolio weight keyed by security identity; the remainder is cash.
        prices: Price keyed by security identity, in the portfolio currency.
        constraints: Cash, minimum order value and sell permission.

    Returns:
        list[OrderSuggestion]: Sells then buys, each ordered by security identity.

    Raises:
        ValueError: Raised when weights, prices or quantities are invalid.
    """

    limits = constraints or RebalanceConstraints()
    _rebalance_validate(current_positions, target_weights, prices, limits)

    security_ids = sorted(set(current_positions) | set(target_weights))
    values = {
        security_id: current_positions.get(security_id, Decimal("0")) * prices[security_id]
        for security_id in security_ids
    }
    total_value = limits.available_cash + sum(values.values(), Decimal("0"))
    if total_value <= Decimal("0"):
        return []
    targets = {
        security_id: target_weights.get(security_id, Decimal("0")) * total_value for security_id in security_ids
    }

    cash = limits.available_cash
    sells: dict[str, Decimal] = {}
    skipped = 0
    if limits.allow_sells:
        for security_id in security_ids:
            excess = values[security_id] - targets[security_id]
            if excess <= Decimal("0"):
                continue
            quantity = min(
                _rebalance_floor(excess / prices[security_id]),
                _rebalance_floor(current_positions.get(security_id, Decimal("0"))),
            )
            if quantity <= Decimal("0"):
                continue
            # Skipped sells fund nothing.
            if quantity * prices[security_id] < limits.min_trade_value:
                skipped += 1
                continue
            sells[security_id] = quantity
            values[security_id] -= quantity * prices[security_id]
            cash += quantity * prices[security_id]

    deficits = {
        security_id: targets[security_id] - values[security_id]
        for security_id in security_ids
        if targets[security_id] > values[security_id]
    }
    while True:
        buys = _rebalance_buys(deficits, values, targets, prices, cash)
        too_small = [
            security_id
            for security_id, quantity in buys.items()
            if quantity * prices[security_id] < limits.min_trade_value
        ]
        if not too_small:
            break
        # Released cash is redistributed among the remaining candidates.
        for security_id in too_small:
            deficits.pop(security_id)
        skipped += len(too_small)

    orders = [
        _rebalance_order(security_id, OrderSide.SELL, quantity, prices[security_id])
        for security_id, quantity in sorted(sells.items())
    ] + [
        _rebalance_order(security_id, OrderSide.BUY, quantity, prices[security_id])
        for security_id, quantity in sorted(buys.items())
    ]
    logger.debug(
        "Rebalance computed securities=%s orders=%s dropped_below_minimum=%s",
        len(security_ids),
        len(orders),
        skipped,
    )
    return orders


def rebalance_from_lot_state(
    lot_state: LotState,
    target_weights: Mapping[str, Decimal],
    prices: Mapping[str, Decimal],
    constraints: RebalanceConstraints | None = None,
) -> list[OrderSuggestion]:
    """Propose rebalancing orders for the open positions of a replayed account.

    Args:
        lot_state: Replayed open lots; their summed quantities are the current positions.
        target_weights: Target portfolio weight keyed by security identity.
        prices: Price keyed by security identity, in the portfolio currency.
        constraints: Cash, minimum order value and sell permission.

    Returns:
        list[OrderSuggestion]: Orders as returned by rebalance().

    Raises:
        ValueError: Raised when weights, prices or quantities are invalid.
    """

    positions = {position.security_id: position.quantity for position in lot_state.lot_state_positions()}
    return rebalance(positions, target_weights, prices, constraints)


def _rebalance_buys(
    deficits: Mapping[str, Decimal],
    values: Mapping[str, Decimal],
    targets: Mapping[str, Decimal],
    prices: Mapping[str, Decimal],
    cash: Decimal,
) -> dict[str, Decimal]:
    """Spend cash on whole shares of under-weight securities.

    Each candidate is first filled to the whole-share floor of its cash-scaled
    deficit, then single shares are added while one more share still reduces the
    absolute deviation from target.

    Args:
        deficits: Value shortfall keyed by candidate security identity.
        values: Current market value keyed by security identity.
        targets: Target market value keyed by security identity.
        prices: Price keyed by security identity.
        cash: Cash available for buys.

    Returns:
        dict[str, Decimal]: Whole-share buy quantity keyed by security identity.
    """

    values = dict(values)
    total_deficit = sum(deficits.values(), Decimal("0"))
    scale = Decimal("1") if total_deficit <= cash else cash / total_deficit

    buys: dict[str, Decimal] = {}
    for security_id in sorted(deficits):
        quantity = _rebalance_floor(deficits[security_id] * scale / prices[security_id])
        if quantity > Decimal("0"):
            buys[security_id] = quantity
            values[security_id] += quantity * prices[security_id]
            cash -= quantity * prices[security_id]

    while True:
        best_security_id = None
        best_improvement = Decimal("0")
        for security_id in sorted(deficits):
            price = prices[security_id]
            if price > cash:
                continue
            current_deviation = abs(values[security_id] - targets[security_id])
            next_deviation = abs(values[security_id] + price - targets[security_id])
            improvement = current_deviation - next_deviation
            if improvement > best_improvement:
                best_security_id = security_id
                best_improvement = improvement
        if best_security_id is None:
            return buys
        buys[best_security_id] = buys.get(best_security_id, Decimal("0")) + Decimal("1")
        values[best_security_id] += prices[best_security_id]
        cash -= prices[best_security_id]


def _rebalance_validate(
    current_positions: Mapping[str, Decimal],
    target_weights: Mapping[str, Decimal],
    prices: Mapping[str, Decimal],
    constraints: RebalanceConstraints,
) -> None:
    if constraints.available_cash < Decimal("0"):
        raise ValueError("available_cash must be >= 0")
    if constraints.min_trade_value < Decimal("0"):
        raise ValueError("min_trade_value must be >= 0")
    for security_id, weight in target_weights.items():
        if weight < Decimal("0"):
            raise ValueError(f"target weight for security={security_id} must be >= 0")
    if sum(target_weights.values(), Decimal("0")) > Decimal("1"):
        raise ValueError("target weights must sum to at most 1")
    for security_id, quantity in current_positions.items():
        if quantity < Decimal("0"):
            raise ValueError(f"position quantity for security={security_id} must be >= 0")
    for security_id in set(current_positions) | set(target_weights):
        price = prices.get(security_id)
        if price is None or price <= Decimal("0"):
            raise ValueError(f"a positive price is required for security={security_id}")


def _rebalance_floor(value: Decimal) -> Decimal:
    return value.to_integral_value(rounding=ROUND_FLOOR)


def _rebalance_order(security_id: str, side: OrderSide, quantity: Decimal, price: Decimal) -> OrderSuggestion:
    return OrderSuggestion(security_id=security_id, side=side, quantity=quantity, price=price, value=quantity * price)
