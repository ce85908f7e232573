"""JSON error bodies for the portal API.

Every failure leaves the API as ``{"error": <message>, "code": <ERR_*>}`` plus
an optional ``details`` object. Blueprints never build these by hand: the
app-level handlers in ``grc_portal/__init__.py`` translate service exceptions
through ``api_error``.

    api_error(E.NOT_FOUND, "Consultant 7 not found")
    api_error(E.CONFLICT_STATE, "Cannot 'invite' consultant 7 (status=APPROVED)",
              details={"action": "invite", "status": "APPROVED"})
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Error codes. The code, not the message, is what clients branch on."""

    # 400: bad payload, unknown enum literal, unknown acting account
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # 404: consultant, client profile, template or route
    NOT_FOUND = "ERR_NOT_FOUND"

    # 405 / 429: transport-level refusals
    METHOD_NOT_ALLOWED = "ERR_METHOD_NOT_ALLOWED"
    RATE_LIMITED = "ERR_RATE_LIMITED"

    # 409: duplicate e-mail / user / template, or a lifecycle step the
    # consultant's status does not allow
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


_STATUS_BY_CODE: dict[str, int] = {
    E.VALIDATION_INVALID: 400,
    E.NOT_FOUND: 404,
    E.METHOD_NOT_ALLOWED: 405,
    E.RATE_LIMITED: 429,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Build the ``(response, status)`` pair a Flask handler returns.

    The HTTP status comes from the code unless ``status`` overrides it;
    unknown codes fall back to 400. Empty ``details`` are left out of the body.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or _STATUS_BY_CODE.get(code, 400)
