# Stripe webhook receiver
import stripe
from flask import Blueprint, request, jsonify, current_app
from app.extensions import db
from ...services.payment_links import process_stripe_event

webhooks_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@webhooks_bp.route("/webhook", methods=["POST"])
def stripe_webhook():
    """
    Receive Stripe events
    ---
    tags:
      - Payments
    description: >
      Verifies the Stripe-Signature header against STRIPE_WEBHOOK_SECRET.
      A completed, paid checkout session marks the invoice in its metadata
      as paid. Repeated deliveries of the same event are acknowledged
      without being applied again.
    responses:
      200:
        description: Event accepted (processed, ignored or duplicate)
      400:
        description: Invalid payload or signature
      503:
        description: Webhook secret not configured
    """
    secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not secret:
        print("[PAYMENTS] Webhook received but STRIPE_WEBHOOK_SECRET is not set")
        return jsonify({
            "status": "error",
            "message": "Webhook secret not configured"
        }), 503

    payload = request.get_data()
    signature = request.headers.get("Stripe-Signature", "")

    try:
        event = stripe.Webhook.construct_event(payload, signature, secret)
    except ValueError:
        return jsonify({"status": "error", "message": "Invalid payload"}), 400
    except stripe.SignatureVerificationError:
        print("[PAYMENTS] Webhook signature verification failed")
        return jsonify({"status": "error", "message": "Invalid signature"}), 400

    try:
        result = process_stripe_event(event)
        return jsonify({"status": "success", "received": True, "result": result}), 200

    except Exception as e:
        db.session.rollback()
        print(f"[PAYMENTS] Error handling webhook {event['id']}: {e}")
        return jsonify({"status": "error", "message": "Internal server error"}), 500
