from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from datetime import date, datetime
import logging

from commission_engine import (
    CommissionEngine,
    DuplicateInvoiceError,
    InvalidStateTransition,
    NotFoundError,
    OutputBuilder,
    PermissionDeniedError,
    Settings,
    quote_commission,
)
from commission_engine.policy import require_capability

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

output = OutputBuilder()


def _role():
    return request.headers.get("X-User-Role")


def _user_id():
    return request.headers.get("X-User-Id")


def _body():
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


def _error_status(error):
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, PermissionDeniedError):
        return 403
    if isinstance(error, (DuplicateInvoiceError, InvalidStateTransition)):
        return 409
    return 400


def create_app(engine=None):
    """
    Build the Flask app around a CommissionEngine.

    The caller owns the engine (and its store); a fresh in-memory engine is
    used when none is given.
    """
    app = Flask(__name__)

    # Enable CORS for all routes
    CORS(app)

    engine = engine or CommissionEngine()
    app.config["ENGINE"] = engine

    @app.errorhandler(ValueError)
    def handle_value_error(e):
        # Engine errors are all ValueError subclasses
        status = _error_status(e)
        logger.error(f"Request to {request.path} failed ({status}): {str(e)}")
        return jsonify({
            "error": str(e),
            "error_type": type(e).__name__,
            "status": "validation_failed" if status == 400 else "failed"
        }), status

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return e
        # Log details but return generic message to avoid information disclosure
        logger.error(f"Unexpected error on {request.path}: {str(e)}", exc_info=True)
        return jsonify({
            "error": "An unexpected error occurred during processing",
            "status": "failed"
        }), 500

    @app.route("/api", methods=["GET"])
    def api_info():
        """API information endpoint"""
        return jsonify({
            "status": "ok",
            "message": "Loan Referral Commission API",
            "version": "1.0",
            "endpoints": {
                "health": "/health [GET]",
                "calculate": "/commission/calculate [POST]",
                "lead_commission": "/leads/<lead_id>/commission [POST, PUT]",
                "generate_invoice": "/leads/<lead_id>/invoices [POST]",
                "invoice": "/invoices/<invoice_id> [GET]",
                "invoice_action": "/invoices/<invoice_id>/<accept|escalate|resolve|approve|reject> [POST]",
                "payouts": "/payouts [POST]",
                "confirm_payout": "/payouts/<payout_id>/confirm [POST]",
                "fail_payout": "/payouts/<payout_id>/fail [POST]"
            }
        }), 200

    @app.route("/health", methods=["GET"])
    def health():
        """Health check for monitoring"""
        return jsonify({"status": "healthy", "environment": engine.settings.environment}), 200

    # -------------------------------------------------------------------------
    # Commission
    # -------------------------------------------------------------------------

    @app.route("/commission/calculate", methods=["POST"])
    def calculate_commission():
        """Quote a commission for an ad-hoc rule and base amount"""
        require_capability(_role(), "calculate_commission")
        input_data = _body()
        if "rule" not in input_data or "base_amount" not in input_data:
            return jsonify({
                "error": "Both 'rule' and 'base_amount' are required",
                "status": "validation_failed"
            }), 400

        calculation, taxes = quote_commission(
            input_data["rule"],
            input_data["base_amount"],
            input_data.get("tds_percentage"),
            settings=engine.settings,
        )
        return jsonify({"commission": output.commission(calculation), "taxes": output.taxes(taxes)}), 200

    @app.route("/leads/<lead_id>/commission", methods=["POST"])
    def calculate_lead_commission(lead_id):
        require_capability(_role(), "calculate_commission")
        as_of = _body().get("as_of")
        calculation = engine.calculate_lead_commission(lead_id, date.fromisoformat(as_of) if as_of else None)
        return jsonify({
            "commission": output.commission(calculation),
            "lead": output.lead(engine.store.get_lead(lead_id))
        }), 200

    @app.route("/leads/<lead_id>/commission", methods=["PUT"])
    def assign_commissions(lead_id):
        """Set agent / sub-agent / referral franchise commission on a lead"""
        input_data = _body()
        lead = engine.assign_commissions(
            lead_id,
            _role(),
            agent=input_data.get("agent_commission_percentage"),
            sub_agent=input_data.get("sub_agent_commission_percentage"),
            referral_franchise=input_data.get("referral_franchise_commission_percentage"),
            referral_amount=input_data.get("referral_franchise_commission_amount"),
        )
        return jsonify({"lead": output.lead(lead)}), 200

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    @app.route("/leads/<lead_id>/invoices", methods=["POST"])
    def generate_invoice(lead_id):
        require_capability(_role(), "generate_invoice")
        logger.info(f"Generating invoices for lead: {lead_id}")
        result = engine.generate_invoice(lead_id)
        return jsonify(output.generation(result)), 201

    @app.route("/invoices/<invoice_id>", methods=["GET"])
    def get_invoice(invoice_id):
        return jsonify({"invoice": output.invoice(engine.store.get_invoice(invoice_id))}), 200

    @app.route("/invoices/<invoice_id>/accept", methods=["POST"])
    def accept_invoice(invoice_id):
        require_capability(_role(), "accept_invoice")
        invoice = engine.lifecycle.accept(invoice_id, _body().get("remarks", ""))
        return jsonify({"invoice": output.invoice(invoice)}), 200

    @app.route("/invoices/<invoice_id>/escalate", methods=["POST"])
    def escalate_invoice(invoice_id):
        require_capability(_role(), "escalate_invoice")
        input_data = _body()
        invoice = engine.lifecycle.escalate(
            invoice_id,
            input_data.get("reason"),
            remarks=input_data.get("remarks"),
            user_id=_user_id(),
        )
        return jsonify({"invoice": output.invoice(invoice)}), 200

    @app.route("/invoices/<invoice_id>/resolve", methods=["POST"])
    def resolve_escalation(invoice_id):
        require_capability(_role(), "resolve_escalation")
        input_data = _body()
        invoice = engine.lifecycle.resolve_escalation(
            invoice_id,
            input_data.get("resolution_remarks"),
            user_id=_user_id(),
            commission_amount=input_data.get("commission_amount"),
        )
        return jsonify({"invoice": output.invoice(invoice)}), 200

    @app.route("/invoices/<invoice_id>/approve", methods=["POST"])
    def approve_invoice(invoice_id):
        require_capability(_role(), "approve_invoice")
        invoice = engine.lifecycle.approve(invoice_id, user_id=_user_id())
        return jsonify({"invoice": output.invoice(invoice)}), 200

    @app.route("/invoices/<invoice_id>/reject", methods=["POST"])
    def reject_invoice(invoice_id):
        require_capability(_role(), "reject_invoice")
        invoice = engine.lifecycle.reject(invoice_id, _body().get("rejection_reason"), user_id=_user_id())
        return jsonify({"invoice": output.invoice(invoice)}), 200

    # -------------------------------------------------------------------------
    # Payouts
    # -------------------------------------------------------------------------

    @app.route("/payouts", methods=["POST"])
    def process_payouts():
        require_capability(_role(), "process_payout")
        payouts = engine.payouts.process_payouts(_body().get("invoice_ids", []), user_id=_user_id())
        return jsonify({"payouts": [output.payout(p) for p in payouts]}), 201

    @app.route("/payouts/<payout_id>/confirm", methods=["POST"])
    def confirm_payout(payout_id):
        require_capability(_role(), "confirm_payout")
        input_data = _body()
        transaction_date = input_data.get("transaction_date")
        payout = engine.payouts.confirm_payment(
            payout_id,
            input_data.get("transaction_id"),
            transaction_date=datetime.fromisoformat(transaction_date) if transaction_date else None,
            payment_method=input_data.get("payment_method", "NEFT"),
            user_id=_user_id(),
        )
        return jsonify({"payout": output.payout(payout)}), 200

    @app.route("/payouts/<payout_id>/fail", methods=["POST"])
    def fail_payout(payout_id):
        require_capability(_role(), "confirm_payout")
        payout = engine.payouts.mark_failed(payout_id, _body().get("remarks"), user_id=_user_id())
        return jsonify({"payout": output.payout(payout)}), 200

    return app


app = create_app()


if __name__ == "__main__":
    settings = Settings.from_env()
    app.run(host="0.0.0.0", port=settings.port, debug=False)
