# Overview: Explicit caller context threaded through every stock operation.

from __future__ import annotations

from dataclasses import dataclass

from .errors import ForbiddenError, ValidationError


@dataclass(frozen=True)
class StockContext:
    """
    Who is calling and which shops they may touch.

    Built once at the request boundary (decorators.require_context) or by a
    CLI/test caller, then passed explicitly into every service call.
    active_shop_id is the shop the caller is operating at (point of sale);
    it is always one of shop_ids when set.
    """
    user_id: int
    shop_ids: frozenset[int]
    active_shop_id: int | None = None

    def can_access(self, shop_id: int | None) -> bool:
        return shop_id is not None and shop_id in self.shop_ids

    def require_shop(self, shop_id: int | None) -> int:
        if shop_id is None:
            raise ValidationError("shop_id is required")
        if not self.can_access(shop_id):
            raise ForbiddenError("Access denied to this shop", details={"shop_id": shop_id})
        return shop_id

    def require_active_shop(self) -> int:
        if self.active_shop_id is None:
            raise ValidationError("An active shop is required for this operation")
        return self.require_shop(self.active_shop_id)

    def scope(self, shop_id: int | None = None) -> frozenset[int]:
        """Shop ids a query should cover: one requested shop, or everything accessible."""
        if shop_id is not None:
            return frozenset({self.require_shop(shop_id)})
        return self.shop_ids
