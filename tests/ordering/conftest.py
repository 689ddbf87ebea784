import json
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture


class FrozenClock:
    """A clock that only moves when told to."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def clock():
    from ordering.utils.clock import reset_clock, set_clock

    frozen = FrozenClock(datetime(2025, 3, 14, 12, 0, tzinfo=UTC))
    set_clock(frozen)
    yield frozen
    reset_clock()


@pytest.fixture()
def make_variant():
    """Register a catalogue variant together with its stock record."""
    from ordering.catalogue.variant import ProductVariant
    from ordering.stock.stock import StockItem

    def _make(stock=10, price=1240, tax_code="standard", track_inventory=True, product_id=None, name="Widget", **extra):
        variant = ProductVariant(
            product_id=product_id or f"prod-{uuid4().hex[:8]}",
            sku=extra.pop("sku", f"SKU-{uuid4().hex[:6].upper()}"),
            product_name=name,
            variant_name=extra.pop("variant_name", "Default"),
            price=price,
            tax_code=tax_code,
            facet_value_ids=json.dumps(extra.pop("facets", [])),
            **extra,
        )
        current_domain.repository_for(ProductVariant).add(variant)
        current_domain.repository_for(StockItem).add(
            StockItem.create(variant.id, stock=stock, track_inventory=track_inventory)
        )
        return variant

    return _make


@pytest.fixture()
def make_customer():
    from ordering.customer.customer import Customer

    def _make(**kwargs):
        kwargs.setdefault("email", "jane@example.com")
        customer = Customer.register(**kwargs)
        current_domain.repository_for(Customer).add(customer)
        return customer

    return _make


@pytest.fixture()
def make_promotion():
    from ordering.promotion.promotion import Promotion

    def _make(**kwargs):
        if kwargs.get("method") == "automatic":
            kwargs.setdefault("title", "Automatic deal")
        else:
            kwargs.setdefault("code", f"SAVE{uuid4().hex[:4].upper()}")
        kwargs.setdefault("discount_value", 10)
        promotion = Promotion.create(**kwargs)
        current_domain.repository_for(Promotion).add(promotion)
        return promotion

    return _make


@pytest.fixture()
def open_cart():
    """Open a cart through the OpenCart command and return its order id."""
    from ordering.cart.management import OpenCart

    def _open(customer_id=None, cart_token=None):
        result = current_domain.process(
            OpenCart(customer_id=customer_id, cart_token=cart_token),
            asynchronous=False,
        )
        return result["order_id"]

    return _open


@pytest.fixture()
def load_order():
    from ordering.order.order import Order

    def _load(order_id):
        return current_domain.repository_for(Order).get(order_id)

    return _load


@pytest.fixture()
def load_stock():
    from ordering.stock.stock import StockItem

    def _load(variant_id):
        return current_domain.repository_for(StockItem).get(variant_id)

    return _load
