"""Customer read model: the parts of a customer account the ordering core reads.

Accounts are owned by the customer service; this copy carries the B2B status
and VAT number for tax exemption and the customer-group memberships used by
group-restricted promotions.
"""

import json
from enum import Enum

from protean.exceptions import ObjectNotFoundError
from protean.fields import String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.tax.calculation import is_tax_exempt


class B2BStatus(Enum):
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@ordering.aggregate
class Customer:
    email = String(max_length=254)
    b2b_status = String(choices=B2BStatus, default=B2BStatus.NONE.value)
    vat_id = String(max_length=50)
    group_ids = Text()  # JSON array of customer group ids

    @classmethod
    def register(cls, email=None, b2b_status=B2BStatus.NONE.value, vat_id=None, group_ids=(), **kwargs):
        return cls(
            email=email,
            b2b_status=b2b_status,
            vat_id=vat_id,
            group_ids=json.dumps([str(group_id) for group_id in group_ids]),
            **kwargs,
        )

    @property
    def groups(self) -> list[str]:
        return json.loads(self.group_ids) if self.group_ids else []

    @property
    def is_tax_exempt(self) -> bool:
        return is_tax_exempt(self.b2b_status, self.vat_id)

    def in_group(self, group_id) -> bool:
        return str(group_id) in self.groups


def find_customer(customer_id) -> Customer | None:
    if not customer_id:
        return None
    try:
        return current_domain.repository_for(Customer).get(customer_id)
    except ObjectNotFoundError:
        return None


def is_customer_tax_exempt(customer_id) -> bool:
    """Guests and unknown customers are never exempt."""
    customer = find_customer(customer_id)
    return customer is not None and customer.is_tax_exempt


def customer_in_group(customer_id, group_id) -> bool:
    customer = find_customer(customer_id)
    return customer is not None and customer.in_group(group_id)
