"""VAT arithmetic on gross (tax-inclusive) prices.

All amounts are integers in minor currency units. Net prices are
back-calculated from gross as ``round(gross / (1 + rate))`` with half-up
rounding and the tax is whatever remains, so ``net + tax == gross`` always
holds exactly.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal


APPROVED_B2B_STATUS = "approved"


@dataclass(frozen=True)
class NetTaxSplit:
    net: int
    tax: int


@dataclass(frozen=True)
class LineTax:
    unit_gross: int
    unit_net: int
    line_gross: int
    line_net: int
    tax_amount: int


def _round(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _net(gross: int, rate: float) -> int:
    return _round(Decimal(gross) / (Decimal(1) + Decimal(str(rate))))


def split_gross_to_net_tax(gross: int, rate: float) -> NetTaxSplit:
    """Split a gross amount into its net and tax parts."""
    if not rate:
        return NetTaxSplit(net=gross, tax=0)
    net = _net(gross, rate)
    return NetTaxSplit(net=net, tax=gross - net)


def net_price_if_exempt(gross: int, rate: float) -> int:
    """Price charged to a tax-exempt customer for a gross price."""
    if not rate:
        return gross
    return _net(gross, rate)


def line_tax(unit_gross: int, quantity: int, rate: float, is_exempt: bool = False) -> LineTax:
    """Tax breakdown for ``quantity`` units at ``unit_gross``.

    Exempt customers are charged the net price: the line gross equals the line
    net and no tax is due. Otherwise the split is done per unit and multiplied
    out, so every unit carries the same tax.
    """
    unit_net = split_gross_to_net_tax(unit_gross, rate).net
    line_net = unit_net * quantity

    if is_exempt or not rate:
        return LineTax(
            unit_gross=unit_net if is_exempt else unit_gross,
            unit_net=unit_net,
            line_gross=line_net,
            line_net=line_net,
            tax_amount=0,
        )

    line_gross = unit_gross * quantity
    return LineTax(
        unit_gross=unit_gross,
        unit_net=unit_net,
        line_gross=line_gross,
        line_net=line_net,
        tax_amount=line_gross - line_net,
    )


def is_tax_exempt(b2b_status: str | None, vat_id: str | None) -> bool:
    """Approved B2B customers with a VAT number are exempt."""
    return b2b_status == APPROVED_B2B_STATUS and bool(vat_id and vat_id.strip())
