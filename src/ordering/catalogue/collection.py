"""Collection read model and product resolution for collection-scoped promotions.

A collection selects products through explicit product filters and facet
filters. Its product set is the union of both.
"""

import json

from protean.exceptions import ObjectNotFoundError
from protean.fields import String, Text
from protean.utils.globals import current_domain

from ordering.catalogue.variant import product_ids_with_facets
from ordering.domain import ordering


@ordering.aggregate
class Collection:
    name = String(required=True, max_length=255)
    product_ids = Text()  # JSON array, product filter
    facet_value_ids = Text()  # JSON array, facet filter

    @classmethod
    def create(cls, name, product_ids=(), facet_value_ids=(), **kwargs):
        return cls(
            name=name,
            product_ids=json.dumps([str(product_id) for product_id in product_ids]),
            facet_value_ids=json.dumps([str(facet_id) for facet_id in facet_value_ids]),
            **kwargs,
        )

    @property
    def product_filter(self) -> list[str]:
        return json.loads(self.product_ids) if self.product_ids else []

    @property
    def facet_filter(self) -> list[str]:
        return json.loads(self.facet_value_ids) if self.facet_value_ids else []

    def resolve_product_ids(self) -> set[str]:
        return set(self.product_filter) | product_ids_with_facets(self.facet_filter)


def collection_product_ids(collection_ids) -> set[str]:
    """Union of the products of every listed collection; unknown ids are skipped."""
    repo = current_domain.repository_for(Collection)
    product_ids = set()
    for collection_id in collection_ids:
        try:
            collection = repo.get(collection_id)
        except ObjectNotFoundError:
            continue
        product_ids |= collection.resolve_product_ids()
    return product_ids
