import logging

from flask import Blueprint, abort, jsonify, request

from storefront.gateways import FlutterwaveClient, PaystackClient, gateway_for
from storefront.workers.tasks import process_gateway_webhook

logger = logging.getLogger(__name__)

bp = Blueprint("webhooks", __name__, url_prefix="/webhooks")


def _accept(provider, parser):
    gateway = gateway_for(provider)
    payload = request.get_data()

    if not gateway.verify_webhook(payload, request.headers):
        logger.warning("Rejected webhook with bad signature", extra={"provider": provider})
        abort(401)

    event = request.get_json(silent=True) or {}
    fields = parser(event)
    if fields is None:
        logger.info("Ignoring webhook event", extra={"provider": provider, "event": event.get("event")})
        return jsonify({"status": "ignored"}), 200

    process_gateway_webhook.delay(provider, fields)
    logger.info("Webhook queued", extra={"provider": provider, "tx_ref": fields.get("tx_ref")})
    return jsonify({"status": "queued"}), 200


@bp.route("/flutterwave", methods=["POST"])
def flutterwave():
    return _accept("flutterwave", FlutterwaveClient.parse_webhook)


@bp.route("/paystack", methods=["POST"])
def paystack():
    return _accept("paystack", PaystackClient.parse_webhook)
