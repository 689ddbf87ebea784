"""Product variant read model: catalogue data snapshotted onto order lines."""

import json

from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import VariantNotFound
from ordering.tax.rates import STANDARD


@ordering.aggregate
class ProductVariant:
    product_id = Identifier(required=True)
    sku = String(required=True, max_length=50)
    product_name = String(required=True, max_length=255)
    variant_name = String(max_length=255)
    price = Integer(required=True, min_value=0)  # Gross, minor units
    tax_code = String(max_length=50, default=STANDARD)
    facet_value_ids = Text()  # JSON array of facet value ids

    @property
    def facets(self) -> list[str]:
        return json.loads(self.facet_value_ids) if self.facet_value_ids else []


def get_variant(variant_id) -> ProductVariant:
    try:
        return current_domain.repository_for(ProductVariant).get(variant_id)
    except ObjectNotFoundError:
        raise VariantNotFound(variant_id) from None


def product_ids_with_facets(facet_value_ids) -> set[str]:
    """Products having at least one variant tagged with any of the facet values."""
    wanted = {str(facet_id) for facet_id in facet_value_ids}
    if not wanted:
        return set()
    variants = current_domain.repository_for(ProductVariant)._dao.query.all().items
    return {str(variant.product_id) for variant in variants if wanted.intersection(variant.facets)}
