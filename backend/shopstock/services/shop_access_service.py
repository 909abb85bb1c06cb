from __future__ import annotations

from ..extensions import db
from ..models import User, Shop, UserShop
from ..context import StockContext
from ..errors import ForbiddenError, NotFoundError


def get_user_shop_ids(user_id: int, *, active_only: bool = True) -> set[int]:
    """Shop ids assigned to the user (the caller's accessible shop scope)."""
    q = (
        db.session.query(UserShop.shop_id)
        .join(Shop, Shop.id == UserShop.shop_id)
        .filter(UserShop.user_id == user_id)
    )
    if active_only:
        q = q.filter(Shop.is_active == True)
    return {row[0] for row in q.all()}


def build_context(user_id: int, active_shop_id: int | None = None) -> StockContext:
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user or not user.is_active:
        raise NotFoundError("User not found")

    shop_ids = get_user_shop_ids(user_id)
    if active_shop_id is not None and active_shop_id not in shop_ids:
        raise ForbiddenError("Access denied to this shop", details={"shop_id": active_shop_id})

    if active_shop_id is None and len(shop_ids) == 1:
        active_shop_id = next(iter(shop_ids))

    return StockContext(user_id=user.id, shop_ids=frozenset(shop_ids), active_shop_id=active_shop_id)


def assign_shop(*, user_id: int, shop_id: int) -> UserShop:
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise NotFoundError("User not found")

    shop = db.session.query(Shop).filter_by(id=shop_id).first()
    if not shop:
        raise NotFoundError("Shop not found")

    existing = db.session.query(UserShop).filter_by(user_id=user_id, shop_id=shop_id).first()
    if existing:
        return existing

    link = UserShop(user_id=user_id, shop_id=shop_id)
    db.session.add(link)
    db.session.commit()
    return link
