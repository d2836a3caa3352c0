"""
AWS Lambda handler for the Loan Referral Commission API.

The Lambda entry point is stateless: it quotes commissions and taxes for an
ad-hoc rule. Invoice and payout workflows need a store and are served by
main.py (Flask app).
"""

import base64
import json
import logging

from commission_engine import OutputBuilder, Settings, quote_commission

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Settings (environment, GST/TDS rates) reused across warm invocations
settings = Settings.from_env()
ENVIRONMENT = settings.environment

output = OutputBuilder()

# CORS headers for API Gateway
CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization,X-User-Role,X-User-Id",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
}


def _response(status_code, payload):
    return {"statusCode": status_code, "headers": CORS_HEADERS, "body": json.dumps(payload)}


def lambda_handler(event, context):
    """
    Main Lambda entry point.

    Handles API Gateway events for:
    - GET /health
    - GET /api
    - POST /calculate_commission
    - OPTIONS (CORS preflight)
    """
    # Handle CORS preflight
    http_method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method", "")
    if http_method == "OPTIONS":
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": ""}

    # Get path (supports both REST API and HTTP API formats)
    path = event.get("path") or event.get("rawPath", "")

    if path == "/health" and http_method == "GET":
        return handle_health()
    elif path == "/calculate_commission" and http_method == "POST":
        return handle_calculate_commission(event)
    elif path == "/api" and http_method == "GET":
        return handle_api_info()
    else:
        return _response(404, {"error": "Not found", "path": path})


def handle_health():
    """Health check endpoint."""
    return _response(200, {"status": "healthy", "environment": ENVIRONMENT})


def handle_api_info():
    """API information endpoint."""
    return _response(
        200,
        {
            "status": "ok",
            "message": "Loan Referral Commission API",
            "version": "1.0",
            "environment": ENVIRONMENT,
            "runtime": "AWS Lambda",
            "endpoints": {"calculate_commission": "/calculate_commission [POST]", "health": "/health [GET]"},
        },
    )


def handle_calculate_commission(event):
    """Quote commission, GST, TDS and net payable for a rule and base amount."""
    try:
        body = event.get("body", "")
        if isinstance(body, str):
            if not body:
                return _response(400, {"error": "No input data provided", "status": "failed"})
            # Handle base64 encoded body (API Gateway)
            if event.get("isBase64Encoded"):
                body = base64.b64decode(body).decode("utf-8")
            input_data = json.loads(body)
        else:
            input_data = body

        rule = input_data["rule"]
        logger.info(f"Quoting commission: {rule.get('commission_type')} {rule.get('commission_value')}")

        calculation, taxes = quote_commission(
            rule,
            input_data["base_amount"],
            input_data.get("tds_percentage"),
            settings=settings,
        )

        return _response(200, {"commission": output.commission(calculation), "taxes": output.taxes(taxes)})

    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {str(e)}")
        return _response(400, {"error": f"Invalid JSON: {str(e)}", "status": "failed"})

    except (ValueError, KeyError, TypeError, AttributeError) as e:
        # Validation errors (missing fields, invalid types, engine errors)
        logger.error(f"Validation error: {str(e)}")
        return _response(400, {"error": f"Validation error: {str(e)}", "status": "validation_failed"})

    except Exception as e:
        # Unexpected errors - log details but return generic message to avoid information disclosure
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
        return _response(500, {"error": "An unexpected error occurred during processing", "status": "failed"})
