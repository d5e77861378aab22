# src/shared/error_codes.py
# Central mapping that aligns with the error contract.
# Keep keys stable: API clients rely on these.
ERROR_CODES = {
    # ─── Validation & Requests ──────────────────────────────────────────────
    "validation_error": {
        "http": 422,
        "message": "Validation failed for one or more fields."
    },
    "invalid_request": {
        "http": 400,
        "message": "Invalid request payload."
    },

    # ─── Authentication & Authorization ────────────────────────────────────
    "unauthorized": {
        "http": 401,
        "message": "Unauthorized. Please provide valid credentials."
    },
    "expired_token": {
        "http": 401,
        "message": "Token has expired."
    },
    "forbidden": {
        "http": 403,
        "message": "You are not allowed to perform this action."
    },
    "invalid_cron_secret": {
        "http": 401,
        "message": "Invalid cron secret."
    },

    # ─── Resources ─────────────────────────────────────────────────────────
    "not_found": {
        "http": 404,
        "message": "Resource not found."
    },
    "tenant_not_found": {
        "http": 404,
        "message": "Tenant not found."
    },
    "webhook_not_found": {
        "http": 404,
        "message": "Webhook not found."
    },
    "conflict": {
        "http": 409,
        "message": "Resource conflict."
    },
    "webhook_url_conflict": {
        "http": 409,
        "message": "A webhook with this URL already exists for the tenant."
    },

    # ─── Delivery / Infrastructure ─────────────────────────────────────────
    "webhook_delivery_failed": {
        "http": 502,
        "message": "Webhook delivery failed."
    },
    "service_unavailable": {
        "http": 503,
        "message": "Service temporarily unavailable."
    },
    "cron_disabled": {
        "http": 503,
        "message": "Cron endpoint is not configured."
    },
    "internal_error": {
        "http": 500,
        "message": "An unexpected error occurred."
    },
}
