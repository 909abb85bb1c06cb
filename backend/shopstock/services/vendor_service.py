# Overview: Tagged vendor references for stock intake.

"""
Vendor Service

A unit records who it was bought from. The source can be one of three
different tables, so the reference is a tagged value:

- VENDOR:     a Vendor record
- CUSTOMER:   a Customer of the owning shop (trade-ins, buy-backs)
- WHOLESALER: an active Shop whose shop_type is "wholesaler"

parse_vendor_ref() turns the boundary's (kind, id) pair into a VendorRef;
resolve_vendor_ref() checks it once against the declared kind. Services
only ever see the resolved VendorRef.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from ..extensions import db
from ..models import Vendor, Customer, Shop
from ..errors import ValidationError
from ..validation import parse_int


class VendorKind(str, enum.Enum):
    VENDOR = "vendor"
    CUSTOMER = "customer"
    WHOLESALER = "wholesaler"


@dataclass(frozen=True)
class VendorRef:
    kind: VendorKind
    id: int

    def as_columns(self) -> dict:
        return {"vendor_kind": self.kind.value, "vendor_id": self.id}


def parse_vendor_ref(kind, vendor_id) -> VendorRef | None:
    """Boundary parse. Both absent -> None; one without the other is invalid."""
    if kind is None and vendor_id is None:
        return None
    if kind is None:
        raise ValidationError("vendor_kind is required when vendor_id is given")
    if vendor_id is None:
        raise ValidationError("vendor_id is required when vendor_kind is given")
    try:
        vendor_kind = VendorKind(kind)
    except ValueError:
        raise ValidationError(
            f"vendor_kind must be one of: {', '.join(k.value for k in VendorKind)}"
        )
    return VendorRef(kind=vendor_kind, id=parse_int(vendor_id, "vendor_id", minimum=1))


def resolve_vendor_ref(ref: VendorRef | None, shop_id: int) -> VendorRef | None:
    """Check the reference points at a real row of its declared kind."""
    if ref is None:
        return None

    if ref.kind is VendorKind.VENDOR:
        found = db.session.query(Vendor.id).filter_by(id=ref.id).first()
    elif ref.kind is VendorKind.CUSTOMER:
        found = (
            db.session.query(Customer.id)
            .filter_by(id=ref.id, shop_id=shop_id, is_active=True)
            .first()
        )
    else:
        found = (
            db.session.query(Shop.id)
            .filter_by(id=ref.id, shop_type="wholesaler", is_active=True)
            .first()
        )

    if found is None:
        raise ValidationError(
            "Invalid vendor",
            details={"vendor_kind": ref.kind.value, "vendor_id": ref.id},
        )
    return ref
