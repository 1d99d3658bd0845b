"""Regression tests for whole-share rebalancing suggestions."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from lotledger.analytics import OrderSide, RebalanceConstraints, rebalance, rebalance_from_lot_state
from lotledger.domain import Lot
from lotledger.ledger import LotState


def _summarize(orders) -> list[tuple[str, OrderSide, Decimal]]:
    return [(order.security_id, order.side, order.quantity) for order in orders]


def test_rebalance_sells_overweight_and_buys_underweight_in_whole_shares() -> None:
    """Sell down the overweight position and spend proceeds on the underweight one.

    Returns:
        None: Assertions validate whole-share order sizing.

    Raises:
        AssertionError: Raised when orders overshoot or use fractions.
    """

    orders = rebalance(
        current_positions={"A": Decimal("10"), "B": Decimal("0")},
        target_weights={"A": Decimal("0.5"), "B": Decimal("0.5")},
        prices={"A": Decimal("10"), "B": Decimal("20")},
    )

    assert _summarize(orders) == [("A", OrderSide.SELL, Decimal("5")), ("B", OrderSide.BUY, Decimal("2"))]
    assert orders[0].value == Decimal("50")
    assert orders[1].value == Decimal("40")


def test_rebalance_breaks_ties_by_lowest_security_id() -> None:
    """Give the leftover share to the lowest security id when improvements tie.

    Returns:
        None: Assertions validate deterministic tie breaking.

    Raises:
        AssertionError: Raised when tie breaking depends on input order.
    """

    orders = rebalance(
        current_positions={},
        target_weights={"B": Decimal("0.5"), "A": Decimal("0.5")},
        prices={"B": Decimal("30"), "A": Decimal("30")},
        constraints=RebalanceConstraints(available_cash=Decimal("100")),
    )

    assert _summarize(orders) == [("A", OrderSide.BUY, Decimal("2")), ("B", OrderSide.BUY, Decimal("1"))]


def test_rebalance_drops_orders_below_minimum_trade_value() -> None:
    orders = rebalance(
        current_positions={"A": Decimal("10"), "B": Decimal("0")},
        target_weights={"A": Decimal("0.5"), "B": Decimal("0.5")},
        prices={"A": Decimal("10"), "B": Decimal("20")},
        constraints=RebalanceConstraints(min_trade_value=Decimal("45")),
    )

    assert _summarize(orders) == [("A", OrderSide.SELL, Decimal("5"))]


def test_rebalance_without_sells_and_cash_suggests_nothing() -> None:
    orders = rebalance(
        current_positions={"A": Decimal("10"), "B": Decimal("0")},
        target_weights={"A": Decimal("0.5"), "B": Decimal("0.5")},
        prices={"A": Decimal("10"), "B": Decimal("20")},
        constraints=RebalanceConstraints(allow_sells=False),
    )

    assert orders == []


def test_rebalance_sell_never_crosses_target() -> None:
    """Floor sell quantities so the remaining position stays at or above target.

    Returns:
        None: Assertions validate non-overshooting sells.

    Raises:
        AssertionError: Raised when a sell rounds past the target.
    """

    orders = rebalance(
        current_positions={"A": Decimal("7")},
        target_weights={"A": Decimal("0.5")},
        prices={"A": Decimal("9")},
        constraints=RebalanceConstraints(available_cash=Decimal("37")),
    )

    assert _summarize(orders) == [("A", OrderSide.SELL, Decimal("1"))]


def test_rebalance_rejects_invalid_inputs() -> None:
    with pytest.raises(ValueError):
        rebalance({"A": Decimal("1")}, {"A": Decimal("0.7"), "B": Decimal("0.4")}, {"A": Decimal("1"), "B": Decimal("1")})
    with pytest.raises(ValueError):
        rebalance({"A": Decimal("1")}, {"A": Decimal("0.5")}, {})
    with pytest.raises(ValueError):
        rebalance({"A": Decimal("-1")}, {"A": Decimal("0.5")}, {"A": Decimal("1")})
    with pytest.raises(ValueError):
        rebalance(
            {"A": Decimal("1")},
            {"A": Decimal("0.5")},
            {"A": Decimal("1")},
            RebalanceConstraints(available_cash=Decimal("-1")),
        )


def test_rebalance_empty_portfolio_returns_no_orders() -> None:
    assert rebalance({}, {"A": Decimal("1")}, {"A": Decimal("10")}) == []


def test_rebalance_below_minimum_sell_does_not_fund_buys() -> None:
    """Keep buys within held cash when the funding sell is below the minimum.

    Returns:
        None: Assertions validate the cash limit after minimum filtering.

    Raises:
        AssertionError: Raised when a buy spends proceeds of a dropped sell.
    """

    orders = rebalance(
        current_positions={"A": Decimal("1")},
        target_weights={"B": Decimal("1")},
        prices={"A": Decimal("60"), "B": Decimal("100")},
        constraints=RebalanceConstraints(available_cash=Decimal("50"), min_trade_value=Decimal("100")),
    )

    assert orders == []


def test_rebalance_spends_cash_of_dropped_buy_on_remaining_candidates() -> None:
    """Redistribute cash released by a below-minimum buy.

    Returns:
        None: Assertions validate net spend and the minimum trade value.

    Raises:
        AssertionError: Raised when cash is overspent or small orders survive.
    """

    constraints = RebalanceConstraints(available_cash=Decimal("60"), min_trade_value=Decimal("30"), allow_sells=False)
    orders = rebalance(
        current_positions={"C": Decimal("10")},
        target_weights={"A": Decimal("0.5"), "B": Decimal("0.5")},
        prices={"A": Decimal("10"), "B": Decimal("25"), "C": Decimal("10")},
        constraints=constraints,
    )

    spent = sum((order.value for order in orders if order.side is OrderSide.BUY), Decimal("0"))
    received = sum((order.value for order in orders if order.side is OrderSide.SELL), Decimal("0"))
    assert _summarize(orders) == [("A", OrderSide.BUY, Decimal("6"))]
    assert all(order.value >= constraints.min_trade_value for order in orders)
    assert spent - received <= constraints.available_cash


def test_rebalance_from_lot_state_uses_summed_open_quantities() -> None:
    lots = tuple(
        Lot(
            lot_id=f"ACC-1-{sequence}",
            account_id="ACC-1",
            security_id="A",
            quantity=Decimal("5"),
            cost_basis=Decimal("50"),
            commission=Decimal("0"),
            currency="USD",
            acquisition_date=date(2024, 1, sequence),
            source_sequence=sequence,
        )
        for sequence in (1, 2)
    )

    orders = rebalance_from_lot_state(
        LotState(account_id="ACC-1", lots=lots),
        target_weights={"A": Decimal("0.5"), "B": Decimal("0.5")},
        prices={"A": Decimal("10"), "B": Decimal("20")},
    )

    assert _summarize(orders) == [("A", OrderSide.SELL, Decimal("5")), ("B", OrderSide.BUY, Decimal("2"))]
