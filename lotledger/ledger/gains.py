"""Realized-gain assembly from consumed lot slices."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Sequence

from lotledger.currency import CurrencyConverter, currency_round
from lotledger.domain import LotMatch, RealizedGain, RealizedGainKind, TaxYearPolicy

from .lot_book import ConsumedLotSlice


def gains_build_realized(
    *,
    account_id: str,
    security_id: str,
    symbol: str,
    sale_sequence: int,
    sale_date: date,
    unit_price: Decimal,
    currency: str,
    commission: Decimal,
    consumed: Sequence[ConsumedLotSlice],
    converter: CurrencyConverter,
    tax_year_policy: TaxYearPolicy,
    kind: RealizedGainKind = RealizedGainKind.SALE,
    simulated: bool = False,
    conversion_date: date | None = None,
) -> RealizedGain:
    """Build one realized-gain record from the lots a disposal consumed.

    Gross proceeds and the sale commission are allocated to consumed lots in
    proportion to quantity; the last slice absorbs the rounding remainder so
    per-lot amounts sum back exactly. Each lot's basis converts at its own
    acquisition date while proceeds and commission convert at the disposal
    conversion date.

    Args:
        account_id: Account identifier.
        security_id: Stable security identity.
        symbol: Symbol valid on the disposal date.
        sale_sequence: Sequence number of the disposing event.
        sale_date: Disposal date used for tax-year bucketing.
        unit_price: Disposal price per share.
        currency: Disposal currency.
        commission: Disposal commission.
        consumed: Consumed lot slices in consumption order.
        converter: Currency converter.
        tax_year_policy: Tax-year boundary policy.
        kind: Realized gain kind.
        simulated: Whether the gain is hypothetical.
        conversion_date: Date used for proceeds conversion, defaulting to `sale_date`.

    Returns:
        RealizedGain: Realized gain with per-lot matches.

    Raises:
        ValueError: Raised when no slices were consumed.
        RateUnavailableError: Raised when a conversion rate is missing.
    """

    if not consumed:
        raise ValueError("realized gain requires at least one consumed lot")

    proceeds_date = conversion_date or sale_date
    quantity = sum((item.quantity for item in consumed), Decimal("0"))
    proceeds = quantity * unit_price
    remaining_proceeds = proceeds
    remaining_commission = commission

    matches: list[LotMatch] = []
    for index, item in enumerate(consumed):
        if index == len(consumed) - 1:
            lot_proceeds = remaining_proceeds
            lot_commission = remaining_commission
        else:
            lot_proceeds = proceeds * item.quantity / quantity
            lot_commission = commission * item.quantity / quantity
            remaining_proceeds -= lot_proceeds
            remaining_commission -= lot_commission

        cost_basis_reporting = converter.currency_convert(item.cost_basis, item.currency, item.acquisition_date)
        proceeds_reporting = converter.currency_convert(lot_proceeds, currency, proceeds_date)
        commission_reporting = converter.currency_convert(lot_commission, currency, proceeds_date)
        matches.append(
            LotMatch(
                lot_id=item.lot_id,
                acquisition_date=item.acquisition_date,
                quantity=item.quantity,
                cost_basis=item.cost_basis,
                cost_currency=item.currency,
                proceeds=lot_proceeds,
                commission=lot_commission,
                cost_basis_reporting=cost_basis_reporting,
                proceeds_reporting=proceeds_reporting,
                commission_reporting=commission_reporting,
                gain_reporting=proceeds_reporting - commission_reporting - cost_basis_reporting,
            )
        )

    cost_currencies = {item.currency for item in consumed}
    cost_currency = next(iter(cost_currencies)) if len(cost_currencies) == 1 else None
    cost_basis = sum((item.cost_basis for item in consumed), Decimal("0"))
    gain = None
    if cost_currency == currency:
        gain = currency_round(proceeds - commission - cost_basis)

    proceeds_reporting = sum((match.proceeds_reporting for match in matches), Decimal("0"))
    commission_reporting = sum((match.commission_reporting for match in matches), Decimal("0"))
    cost_basis_reporting = sum((match.cost_basis_reporting for match in matches), Decimal("0"))

    return RealizedGain(
        account_id=account_id,
        security_id=security_id,
        symbol=symbol,
        sale_sequence=sale_sequence,
        sale_date=sale_date,
        quantity=quantity,
        proceeds=proceeds,
        proceeds_currency=currency,
        commission=commission,
        cost_basis=cost_basis,
        cost_currency=cost_currency,
        gain=gain,
        proceeds_reporting=proceeds_reporting,
        commission_reporting=commission_reporting,
        cost_basis_reporting=cost_basis_reporting,
        gain_reporting=proceeds_reporting - commission_reporting - cost_basis_reporting,
        reporting_currency=converter.reporting_currency,
        tax_year=tax_year_policy.tax_year_for(sale_date),
        kind=kind,
        simulated=simulated,
        matches=tuple(matches),
    )


__all__ = ["gains_build_realized"]
