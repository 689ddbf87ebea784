"""Tax rates by tax code.

A default set of rates is always available; persisted ``TaxRate`` records
override or extend it. Unknown codes fall back to the standard rate.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, String
from protean.utils.globals import current_domain

from ordering.domain import ordering

STANDARD = "standard"

DEFAULT_TAX_RATES = {
    STANDARD: 0.24,
    "food": 0.14,
    "books": 0.10,
    "zero": 0.0,
}


@ordering.aggregate
class TaxRate:
    code = String(required=True, max_length=50)
    name = String(max_length=100)
    rate = Float(required=True, min_value=0.0)

    def update_rate(self, rate, name=None):
        if rate < 0 or rate >= 1:
            raise ValidationError({"rate": ["Tax rate must be between 0 and 1"]})
        self.rate = rate
        if name is not None:
            self.name = name


def _persisted_rates():
    return current_domain.repository_for(TaxRate)._dao.query.all().items


def get_tax_rate(code: str | None) -> float:
    """Rate for a tax code; unknown or empty codes get the standard rate."""
    code = code or STANDARD
    for record in _persisted_rates():
        if record.code == code:
            return record.rate
    if code in DEFAULT_TAX_RATES:
        return DEFAULT_TAX_RATES[code]
    return get_tax_rate(STANDARD) if code != STANDARD else DEFAULT_TAX_RATES[STANDARD]


def list_tax_rates() -> dict[str, float]:
    """All known rates, defaults merged with persisted overrides."""
    rates = dict(DEFAULT_TAX_RATES)
    for record in _persisted_rates():
        rates[record.code] = record.rate
    return rates


@ordering.command(part_of="TaxRate")
class SetTaxRate:
    code = String(required=True, max_length=50)
    rate = Float(required=True)
    name = String(max_length=100)


@ordering.command_handler(part_of=TaxRate)
class TaxRateHandler:
    @handle(SetTaxRate)
    def set_tax_rate(self, command):
        repo = current_domain.repository_for(TaxRate)
        existing = repo._dao.query.filter(code=command.code).all().items
        if existing:
            tax_rate = existing[0]
            tax_rate.update_rate(command.rate, command.name)
        else:
            tax_rate = TaxRate(code=command.code, name=command.name or command.code, rate=0.0)
            tax_rate.update_rate(command.rate)
        repo.add(tax_rate)
        return str(tax_rate.id)
