"""Catalogue side effects produced by approving a submission.

The state machine decides *which* effect a payload implies; the submission
repository applies it in the same transaction that marks the submission
approved.
"""
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CreateProduct:
    fields: dict


@dataclass(frozen=True)
class UpdateProduct:
    product_id: str
    fields: dict = field(default_factory=dict)


@dataclass(frozen=True)
class RemoveProduct:
    product_id: str
    hard_delete: bool = False


CatalogueEffect = CreateProduct | UpdateProduct | RemoveProduct
