"""Portfolio API router composition for lot, gain, cash-flow and what-if reads."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from lotledger.analytics import (
    OrderSuggestion,
    Quote,
    RebalanceConstraints,
    SellInstruction,
    rebalance,
    rebalance_from_lot_state,
    simulate_sell,
)
from lotledger.config import AppSettings
from lotledger.domain import CashFlowCategory, CashFlowEntry, LedgerError, Lot, RealizedGain
from lotledger.ledger import (
    LedgerReplayResult,
    LedgerReplayService,
    ReplayCollaborators,
    snapshot_reconcile_positions,
    snapshot_unrealized_gains,
)
from lotledger.reporting import Jurisdiction, cash_flow_filter_year, cash_flow_summarize, tax_statement_build

from ..schemas import AccountRebalanceRequest, RebalanceRequest, ReconcileRequest, SimulateSellRequest


def api_create_portfolio_router(
    settings: AppSettings,
    replay_service: LedgerReplayService,
    jurisdiction: Jurisdiction,
) -> APIRouter:
    """Create portfolio router replaying accounts on demand.

    Every read replays the account from the event store, so responses always
    reflect the stored history.

    Args:
        settings: Runtime settings used for valuation and rebalance defaults.
        replay_service: Ledger replay service.
        jurisdiction: Tax jurisdiction for tax-statement inputs.

    Returns:
        APIRouter: Router exposing account and portfolio endpoints.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if settings is None:
        raise ValueError("settings must not be None")
    if replay_service is None:
        raise ValueError("replay_service must not be None")
    if jurisdiction is None:
        raise ValueError("jurisdiction must not be None")

    router = APIRouter(tags=["portfolio"])

    def api_replay(account_id: str) -> tuple[ReplayCollaborators, LedgerReplayResult]:
        collaborators = replay_service.ledger_load_collaborators()
        return collaborators, replay_service.ledger_replay(account_id, collaborators=collaborators)

    def api_valuation_date() -> date:
        return settings.valuation_date or datetime.now(timezone.utc).date()

    @router.get("/accounts/{account_id}/lots")
    def api_account_lots(account_id: str) -> JSONResponse:
        """Return open lots, positions and unrealized gains of one account.

        Args:
            account_id: Account identifier.

        Returns:
            JSONResponse: Lot state payload, 404 for unknown accounts, 422 for replay failures.

        Raises:
            RuntimeError: Raised when repository reads fail.
        """

        try:
            collaborators, result = api_replay(account_id)
            valuation_date = api_valuation_date()
            latest_prices = {
                security_id: collaborators.price_lookup.price_lookup_latest(security_id, valuation_date)
                for security_id in result.lot_state.lot_state_security_ids()
            }
            priced = {security_id: quote for security_id, quote in latest_prices.items() if quote is not None}
            unrealized = snapshot_unrealized_gains(
                lot_state=result.lot_state,
                quotes={security_id: quote[0] for security_id, quote in priced.items()},
                quote_currencies={security_id: quote[1] for security_id, quote in priced.items()},
                converter=collaborators.converter,
                valuation_date=valuation_date,
            )
        except LedgerError as error:
            return api_ledger_error_response(error)
        except LookupError as error:
            return api_not_found_response(str(error))

        payload = {
            "account_id": result.account_id,
            "valuation_date": valuation_date.isoformat(),
            "reporting_currency": collaborators.converter.reporting_currency,
            "lots": [api_serialize_lot(lot) for lot in result.lot_state.lots],
            "positions": [
                {
                    "security_id": position.security_id,
                    "quantity": str(position.quantity),
                    "lot_count": position.lot_count,
                    "cost_basis_by_currency": {
                        currency: str(amount) for currency, amount in position.cost_basis_by_currency.items()
                    },
                }
                for position in result.lot_state.lot_state_positions()
            ],
            "unrealized_gains": [
                {
                    "security_id": gain.security_id,
                    "quantity": str(gain.quantity),
                    "market_value_reporting": str(gain.market_value_reporting),
                    "cost_basis_reporting": str(gain.cost_basis_reporting),
                    "unrealized_gain_reporting": str(gain.unrealized_gain_reporting),
                }
                for gain in unrealized
            ],
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/accounts/{account_id}/realized-gains")
    def api_account_realized_gains(
        account_id: str,
        tax_year: int | None = Query(default=None),
    ) -> JSONResponse:
        """Return realized gains of one account, optionally for one tax year.

        Args:
            account_id: Account identifier.
            tax_year: Optional tax-year filter.

        Returns:
            JSONResponse: Gains payload with reporting-currency totals.

        Raises:
            RuntimeError: Raised when repository reads fail.
        """

        try:
            collaborators, result = api_replay(account_id)
        except LedgerError as error:
            return api_ledger_error_response(error)
        except LookupError as error:
            return api_not_found_response(str(error))

        gains = [gain for gain in result.realized_gains if tax_year is None or gain.tax_year == tax_year]
        payload = {
            "account_id": result.account_id,
            "filters": {"tax_year": tax_year},
            "reporting_currency": collaborators.converter.reporting_currency,
            "items": [api_serialize_realized_gain(gain) for gain in gains],
            "totals": {
                "proceeds_reporting": str(sum((gain.proceeds_reporting for gain in gains), Decimal("0"))),
                "cost_basis_reporting": str(sum((gain.cost_basis_reporting for gain in gains), Decimal("0"))),
                "gain_reporting": str(sum((gain.gain_reporting for gain in gains), Decimal("0"))),
            },
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/accounts/{account_id}/cash-flows")
    def api_account_cash_flows(
        account_id: str,
        year: int | None = Query(default=None),
        category: CashFlowCategory | None = Query(default=None),
    ) -> JSONResponse:
        """Return cash-flow entries of one account, summarized when a tax year is given.

        Args:
            account_id: Account identifier.
            year: Optional tax-year filter.
            category: Optional category filter applied to the listed entries, e.g. DEPOSIT.

        Returns:
            JSONResponse: Cash-flow payload.

        Raises:
            RuntimeError: Raised when repository reads fail.
        """

        try:
            _, result = api_replay(account_id)
        except LedgerError as error:
            return api_ledger_error_response(error)
        except LookupError as error:
            return api_not_found_response(str(error))

        policy = replay_service.config.tax_year_policy
        if year is None:
            entries = list(result.cash_flows)
            summary_payload = None
        else:
            entries = cash_flow_filter_year(result.cash_flows, year, policy)
            summary = cash_flow_summarize(result.cash_flows, year, policy)
            summary_payload = {
                "tax_year": summary.tax_year,
                "totals": [
                    {
                        "currency": total.currency,
                        "category": total.category.value,
                        "amount": str(total.amount),
                        "reporting_amount": str(total.reporting_amount),
                        "entry_count": total.entry_count,
                    }
                    for total in summary.totals
                ],
                "reporting_totals_by_category": {
                    name: str(amount) for name, amount in summary.reporting_totals_by_category.items()
                },
                "net_reporting_amount": str(summary.net_reporting_amount),
            }

        if category is not None:
            entries = [entry for entry in entries if entry.category is category]
        payload = {
            "account_id": result.account_id,
            "filters": {"year": year, "category": None if category is None else category.value},
            "items": [api_serialize_cash_flow(entry) for entry in entries],
            "summary": summary_payload,
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/accounts/{account_id}/tax-statement")
    def api_account_tax_statement(
        account_id: str,
        tax_year: int = Query(),
    ) -> JSONResponse:
        """Return the tax-statement input of one account and tax year.

        Args:
            account_id: Account identifier.
            tax_year: Tax year to declare.

        Returns:
            JSONResponse: Tax-statement payload.

        Raises:
            RuntimeError: Raised when repository reads fail.
        """

        try:
            collaborators, result = api_replay(account_id)
            statement = tax_statement_build(
                gains=result.realized_gains,
                cash_flows=result.cash_flows,
                jurisdiction=jurisdiction,
                tax_year=tax_year,
                converter=collaborators.converter,
            )
        except LedgerError as error:
            return api_ledger_error_response(error)
        except LookupError as error:
            return api_not_found_response(str(error))
        except ValueError as error:
            payload = {"status": "error", "code": "TAX_STATEMENT_CONFLICT", "message": str(error)}
            return JSONResponse(content=payload, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)

        payload = {
            "account_id": result.account_id,
            "jurisdiction_code": statement.jurisdiction_code,
            "currency": statement.currency,
            "tax_year": statement.tax_year,
            "stock_sales": [
                {
                    "security_id": line.security_id,
                    "symbol": line.symbol,
                    "sale_sequence": line.sale_sequence,
                    "sale_date": line.sale_date.isoformat(),
                    "kind": line.kind.value,
                    "quantity": str(line.quantity),
                    "proceeds": str(line.proceeds),
                    "commission": str(line.commission),
                    "cost_basis": str(line.cost_basis),
                    "gain": str(line.gain),
                }
                for line in statement.stock_sales
            ],
            "dividends": [
                {
                    "date": line.date.isoformat(),
                    "symbol": line.symbol,
                    "currency": line.currency,
                    "amount": str(line.amount),
                    "paid_tax": str(line.paid_tax),
                    "amount_local": str(line.amount_local),
                    "paid_tax_local": str(line.paid_tax_local),
                    "tax": str(line.tax),
                    "tax_to_pay": str(line.tax_to_pay),
                }
                for line in statement.dividends
            ],
            "totals": {
                "proceeds": str(statement.total_proceeds),
                "cost_basis": str(statement.total_cost_basis),
                "gain": str(statement.total_gain),
                "dividends": str(statement.total_dividends),
                "paid_tax": str(statement.total_paid_tax),
                "tax_to_pay": str(statement.total_tax_to_pay),
                "interest": str(statement.total_interest),
            },
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.post("/accounts/{account_id}/simulate-sell")
    def api_account_simulate_sell(account_id: str, request: SimulateSellRequest) -> JSONResponse:
        """Evaluate hypothetical sales against the replayed lots of one account.

        A simulation stopped by an unfillable instruction still answers 200 and
        carries the structured failure.

        Args:
            account_id: Account identifier.
            request: Ordered instructions and optional quotes.

        Returns:
            JSONResponse: Simulated gain report payload.

        Raises:
            RuntimeError: Raised when repository reads fail.
        """

        try:
            collaborators, result = api_replay(account_id)
        except LedgerError as error:
            return api_ledger_error_response(error)
        except LookupError as error:
            return api_not_found_response(str(error))

        sale_date = request.sale_date or api_valuation_date()
        quotes = {
            security_id: Quote(price=quote.price, currency=quote.currency)
            for security_id, quote in request.quotes.items()
        }
        for instruction in request.instructions:
            if instruction.security_id in quotes:
                continue
            latest_price = collaborators.price_lookup.price_lookup_latest(instruction.security_id, sale_date)
            if latest_price is not None:
                quotes[instruction.security_id] = Quote(price=latest_price[0], currency=latest_price[1])

        report = simulate_sell(
            lot_state=result.lot_state,
            instructions=[
                SellInstruction(
                    security_id=instruction.security_id,
                    quantity=instruction.quantity,
                    commission=instruction.commission,
                )
                for instruction in request.instructions
            ],
            quotes=quotes,
            converter=collaborators.converter,
            sale_date=sale_date,
            tax_year_policy=replay_service.config.tax_year_policy,
        )
        failure_payload = None
        if report.failure is not None:
            failure_payload = {
                "instruction_index": report.failure.instruction_index,
                "security_id": report.failure.security_id,
                "code": report.failure.error_code,
                "message": report.failure.message,
                "requested_quantity": api_optional_decimal(report.failure.requested_quantity),
                "available_quantity": api_optional_decimal(report.failure.available_quantity),
            }
        payload = {
            "account_id": report.account_id,
            "status": "success" if report.succeeded else "failed",
            "sale_date": sale_date.isoformat(),
            "reporting_currency": report.reporting_currency,
            "items": [api_serialize_realized_gain(gain) for gain in report.realized_gains],
            "total_gain_reporting": str(report.total_gain_reporting),
            "failure": failure_payload,
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.post("/accounts/{account_id}/rebalance")
    def api_account_rebalance(account_id: str, request: AccountRebalanceRequest) -> JSONResponse:
        """Suggest whole-share orders for the replayed positions of one account.

        Prices missing from the request fall back to the latest stored close on
        or before the valuation date, converted to the reporting currency.

        Args:
            account_id: Account identifier.
            request: Target weights, optional prices and constraints.

        Returns:
            JSONResponse: Ordered suggestions, 400 for invalid inputs, 404 for unknown accounts.

        Raises:
            RuntimeError: Raised when repository reads fail.
        """

        valuation_date = api_valuation_date()
        try:
            collaborators, result = api_replay(account_id)
            prices = dict(request.prices)
            for security_id in set(result.lot_state.lot_state_security_ids()) | set(request.target_weights):
                if security_id in prices:
                    continue
                latest_price = collaborators.price_lookup.price_lookup_latest(security_id, valuation_date)
                if latest_price is not None:
                    prices[security_id] = collaborators.converter.currency_convert(
                        latest_price[0], latest_price[1], valuation_date
                    )
        except LedgerError as error:
            return api_ledger_error_response(error)
        except LookupError as error:
            return api_not_found_response(str(error))

        min_trade_value = request.min_trade_value
        if min_trade_value is None:
            min_trade_value = settings.rebalance_min_trade_value
        try:
            suggestions = rebalance_from_lot_state(
                lot_state=result.lot_state,
                target_weights=request.target_weights,
                prices=prices,
                constraints=RebalanceConstraints(
                    available_cash=request.available_cash,
                    min_trade_value=min_trade_value,
                    allow_sells=request.allow_sells,
                ),
            )
        except ValueError as error:
            payload = {"status": "error", "code": "INVALID_REBALANCE_INPUT", "message": str(error)}
            return JSONResponse(content=payload, status_code=status.HTTP_400_BAD_REQUEST)

        payload = {
            "account_id": result.account_id,
            "valuation_date": valuation_date.isoformat(),
            "reporting_currency": collaborators.converter.reporting_currency,
            "items": [api_serialize_order(suggestion) for suggestion in suggestions],
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.post("/accounts/{account_id}/reconcile")
    def api_account_reconcile(account_id: str, request: ReconcileRequest) -> JSONResponse:
        """Compare replayed open quantities with broker-reported positions.

        Args:
            account_id: Account identifier.
            request: Broker-reported quantities.

        Returns:
            JSONResponse: Mismatch payload; an empty list means the books agree.

        Raises:
            RuntimeError: Raised when repository reads fail.
        """

        try:
            _, result = api_replay(account_id)
        except LedgerError as error:
            return api_ledger_error_response(error)
        except LookupError as error:
            return api_not_found_response(str(error))

        mismatches = snapshot_reconcile_positions(result.lot_state, request.reported_quantities)
        payload = {
            "account_id": result.account_id,
            "status": "matched" if not mismatches else "mismatched",
            "mismatches": [
                {
                    "security_id": mismatch.security_id,
                    "replayed_quantity": str(mismatch.replayed_quantity),
                    "reported_quantity": str(mismatch.reported_quantity),
                    "difference": str(mismatch.difference),
                }
                for mismatch in mismatches
            ],
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.post("/portfolio/rebalance")
    def api_portfolio_rebalance(request: RebalanceRequest) -> JSONResponse:
        """Suggest whole-share orders moving positions toward target weights.

        Args:
            request: Positions, target weights, prices and constraints.

        Returns:
            JSONResponse: Ordered suggestions, or 400 for invalid inputs.

        Raises:
            RuntimeError: This handler does not raise runtime errors.
        """

        min_trade_value = request.min_trade_value
        if min_trade_value is None:
            min_trade_value = settings.rebalance_min_trade_value
        try:
            suggestions = rebalance(
                current_positions=request.positions,
                target_weights=request.target_weights,
                prices=request.prices,
                constraints=RebalanceConstraints(
                    available_cash=request.available_cash,
                    min_trade_value=min_trade_value,
                    allow_sells=request.allow_sells,
                ),
            )
        except ValueError as error:
            payload = {"status": "error", "code": "INVALID_REBALANCE_INPUT", "message": str(error)}
            return JSONResponse(content=payload, status_code=status.HTTP_400_BAD_REQUEST)

        payload = {"items": [api_serialize_order(suggestion) for suggestion in suggestions]}
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router


def api_ledger_error_response(error: LedgerError) -> JSONResponse:
    """Map a ledger failure to a 422 payload carrying its error code and context."""

    payload = {
        "status": "error",
        "code": error.error_code,
        "message": str(error),
        "context": {key: str(value) for key, value in sorted(error.context.items())},
    }
    return JSONResponse(content=payload, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


def api_not_found_response(message: str) -> JSONResponse:
    payload = {"status": "error", "code": "NOT_FOUND", "message": message}
    return JSONResponse(content=payload, status_code=status.HTTP_404_NOT_FOUND)


def api_optional_decimal(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def api_serialize_lot(lot: Lot) -> dict[str, object]:
    return {
        "lot_id": lot.lot_id,
        "security_id": lot.security_id,
        "quantity": str(lot.quantity),
        "cost_basis": str(lot.cost_basis),
        "commission": str(lot.commission),
        "currency": lot.currency,
        "acquisition_date": lot.acquisition_date.isoformat(),
        "source_sequence": lot.source_sequence,
    }


def api_serialize_realized_gain(gain: RealizedGain) -> dict[str, object]:
    """Serialize one realized gain to JSON payload.

    Args:
        gain: Realized or simulated gain.

    Returns:
        dict[str, object]: JSON-serializable gain payload.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return {
        "security_id": gain.security_id,
        "symbol": gain.symbol,
        "sale_sequence": gain.sale_sequence,
        "sale_date": gain.sale_date.isoformat(),
        "kind": gain.kind.value,
        "simulated": gain.simulated,
        "tax_year": gain.tax_year,
        "quantity": str(gain.quantity),
        "proceeds": str(gain.proceeds),
        "proceeds_currency": gain.proceeds_currency,
        "commission": str(gain.commission),
        "cost_basis": str(gain.cost_basis),
        "cost_currency": gain.cost_currency,
        "gain": api_optional_decimal(gain.gain),
        "proceeds_reporting": str(gain.proceeds_reporting),
        "commission_reporting": str(gain.commission_reporting),
        "cost_basis_reporting": str(gain.cost_basis_reporting),
        "gain_reporting": str(gain.gain_reporting),
        "reporting_currency": gain.reporting_currency,
        "matches": [
            {
                "lot_id": match.lot_id,
                "acquisition_date": match.acquisition_date.isoformat(),
                "quantity": str(match.quantity),
                "cost_basis": str(match.cost_basis),
                "cost_currency": match.cost_currency,
                "cost_basis_reporting": str(match.cost_basis_reporting),
                "proceeds_reporting": str(match.proceeds_reporting),
                "gain_reporting": str(match.gain_reporting),
            }
            for match in gain.matches
        ],
    }


def api_serialize_order(suggestion: OrderSuggestion) -> dict[str, object]:
    return {
        "security_id": suggestion.security_id,
        "side": suggestion.side.value,
        "quantity": str(suggestion.quantity),
        "price": str(suggestion.price),
        "value": str(suggestion.value),
    }


def api_serialize_cash_flow(entry: CashFlowEntry) -> dict[str, object]:
    return {
        "sequence": entry.sequence,
        "date": entry.date.isoformat(),
        "category": entry.category.value,
        "currency": entry.currency,
        "amount": str(entry.amount),
        "reporting_amount": str(entry.reporting_amount),
        "symbol": entry.symbol,
        "description": entry.description,
    }


__all__ = [
    "api_create_portfolio_router",
    "api_ledger_error_response",
    "api_serialize_cash_flow",
    "api_serialize_lot",
    "api_serialize_order",
    "api_serialize_realized_gain",
]
