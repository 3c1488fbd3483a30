import logging

from flask import Blueprint, current_app, g, jsonify

from storefront.billing.shop_visibility import activate_shop, deactivate_shop
from storefront.decorators import admin_required, json_body
from storefront.ledger.store import LedgerStore
from storefront.models import Shop

logger = logging.getLogger(__name__)

bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@bp.route("/shops/<int:shop_id>/activate", methods=["POST"])
@admin_required
def activate(shop_id):
    """Open a shop for one period without a gateway payment."""
    data = json_body()
    store = LedgerStore()
    subscription = activate_shop(
        store,
        shop_id,
        plan=data.get("plan"),
        default_plan=current_app.config["DEFAULT_PLAN"],
    )
    logger.info("Shop activated by admin", extra={"shop_id": shop_id, "admin_id": g.admin_id})
    return jsonify({
        "shop": store.get(Shop, shop_id).to_dict(),
        "subscription": subscription.to_dict() if subscription else None,
    }), 200


@bp.route("/shops/<int:shop_id>/deactivate", methods=["POST"])
@admin_required
def deactivate(shop_id):
    store = LedgerStore()
    subscription = deactivate_shop(store, shop_id)
    logger.info("Shop deactivated by admin", extra={"shop_id": shop_id, "admin_id": g.admin_id})
    return jsonify({
        "shop": store.get(Shop, shop_id).to_dict(),
        "subscription": subscription.to_dict() if subscription else None,
    }), 200
