"""What-if disposal evaluation over an immutable lot-state snapshot."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Mapping, Sequence

from lotledger.currency import CurrencyConverter
from lotledger.domain import CALENDAR_TAX_YEAR, InsufficientLotsError, RateUnavailableError, RealizedGain, TaxYearPolicy
from lotledger.ledger import LotBook, LotState, gains_build_realized

from .interfaces import Quote, SellInstruction, SimulatedGainReport, SimulationFailure

logger = logging.getLogger(__name__)

QUOTE_UNAVAILABLE = "QUOTE_UNAVAILABLE"


def simulate_sell(  # pylint: disable=too-many-arguments
    lot_state: LotState,
    instructions: Sequence[SellInstruction],
    quotes: Mapping[str, Quote],
    converter: CurrencyConverter,
    sale_date: date,
    tax_year_policy: TaxYearPolicy = CALENDAR_TAX_YEAR,
    symbols: Mapping[str, str] | None = None,
) -> SimulatedGainReport:
    """Evaluate an ordered series of hypothetical sales.

    Instructions apply one after another to a private copy of the lots, so an
    earlier sale is visible to a later one. The first instruction that cannot
    be filled stops the simulation and is reported as a structured failure;
    gains of instructions before it are kept. `lot_state` is never modified.

    Args:
        lot_state: Replayed lot state.
        instructions: Ordered sell instructions.
        quotes: Quote keyed by security identity.
        converter: Currency converter for reporting amounts.
        sale_date: Hypothetical sale date.
        tax_year_policy: Tax-year boundary policy.
        symbols: Optional display symbol keyed by security identity.

    Returns:
        SimulatedGainReport: Simulated gains tagged `simulated=True`.

    Raises:
        ValueError: Raised when an instruction carries a non-positive quantity.
    """

    book = LotBook.from_lot_state(lot_state)
    display_symbols = symbols or {}
    realized_gains: list[RealizedGain] = []
    failure: SimulationFailure | None = None

    for instruction_index, instruction in enumerate(instructions):
        security_id = instruction.security_id.strip()
        if instruction.quantity is not None and instruction.quantity <= Decimal("0"):
            raise ValueError(f"instruction {instruction_index} quantity must be positive")

        quote = quotes.get(security_id)
        if quote is None:
            failure = SimulationFailure(
                instruction_index=instruction_index,
                security_id=security_id,
                error_code=QUOTE_UNAVAILABLE,
                message=f"no quote for security={security_id}",
                requested_quantity=instruction.quantity,
            )
            break

        available = book.book_open_quantity(security_id)
        quantity = available if instruction.quantity is None else instruction.quantity
        try:
            if quantity == Decimal("0"):
                raise InsufficientLotsError(security_id, quantity, available)
            consumed = book.book_consume_fifo(security_id, quantity)
            realized_gains.append(
                gains_build_realized(
                    account_id=lot_state.account_id,
                    security_id=security_id,
                    symbol=display_symbols.get(security_id, security_id),
                    sale_sequence=instruction_index + 1,
                    sale_date=sale_date,
                    unit_price=quote.price,
                    currency=quote.currency.upper(),
                    commission=abs(instruction.commission),
                    consumed=consumed,
                    converter=converter,
                    tax_year_policy=tax_year_policy,
                    simulated=True,
                )
            )
        except InsufficientLotsError as error:
            failure = SimulationFailure(
                instruction_index=instruction_index,
                security_id=security_id,
                error_code=error.error_code,
                message=str(error),
                requested_quantity=error.requested_quantity,
                available_quantity=error.available_quantity,
            )
            break
        except RateUnavailableError as error:
            failure = SimulationFailure(
                instruction_index=instruction_index,
                security_id=security_id,
                error_code=error.error_code,
                message=str(error),
                requested_quantity=quantity,
                available_quantity=available,
            )
            break

    if failure is not None:
        logger.info(
            "Simulation stopped account_id=%s instruction_index=%s error_code=%s",
            lot_state.account_id,
            failure.instruction_index,
            failure.error_code,
        )

    return SimulatedGainReport(
        account_id=lot_state.account_id,
        realized_gains=tuple(realized_gains),
        failure=failure,
        total_gain_reporting=sum((gain.gain_reporting for gain in realized_gains), Decimal("0")),
        reporting_currency=converter.reporting_currency,
    )
