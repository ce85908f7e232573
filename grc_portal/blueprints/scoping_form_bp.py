"""Scoping form blueprint.

Admins maintain one question template per service; clients submit answers
which land in their own instance of that template.

Endpoint groups:
  Templates        POST /api/v1/scoping-forms
                   GET  /api/v1/scoping-forms?kind=template|instance|all&order=asc|desc
                   GET/PUT/DELETE /api/v1/scoping-forms/templates/<service>
  Client view      GET  /api/v1/scoping-forms/client/<client_id>/service/<service>
                   GET  .../projection   (question/answer pairs)
                   GET  .../html         (printable page)
  Submission       POST /api/v1/scoping-forms/client-submission

``client_id`` is always the client *profile* id; the registry resolves it to
the owning account.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, render_template, request

from grc_portal import limiter
from grc_portal.middleware.rate_limiter import SUBMISSION_LIMIT
from grc_portal.models import db
from grc_portal.services.scoping_form_registry import ScopingFormRegistry
from grc_portal.utils.helpers import actor_id, json_body, pagination_args

logger = logging.getLogger(__name__)

scoping_form_bp = Blueprint("scoping_form", __name__, url_prefix="/api/v1/scoping-forms")

_submission_limit = limiter.shared_limit(SUBMISSION_LIMIT, scope="scoping_submission")


def _registry() -> ScopingFormRegistry:
    return ScopingFormRegistry(db.session)


# ═════════════════════════════════════════════════════════════════════════
# Templates
# ═════════════════════════════════════════════════════════════════════════


@scoping_form_bp.route("", methods=["POST"])
def create_template():
    """Body: {service, questions: [{id, text, type, options}]}."""
    data = json_body()
    form = _registry().create_template(data.get("service"), data.get("questions"), actor_id())
    return jsonify(form.to_dict()), 201


@scoping_form_bp.route("", methods=["GET"])
def list_forms():
    limit, offset = pagination_args()
    forms = _registry().list_forms(
        kind=request.args.get("kind", "all"),
        order=request.args.get("order", "desc"),
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": [f.to_dict() for f in forms], "limit": limit, "offset": offset}), 200


@scoping_form_bp.route("/templates/<service>", methods=["GET"])
def get_template(service):
    return jsonify(_registry().get_template(service).to_dict()), 200


@scoping_form_bp.route("/templates/<service>", methods=["PUT"])
def update_template(service):
    form = _registry().update_template(service, json_body().get("questions"), actor_id())
    return jsonify(form.to_dict()), 200


@scoping_form_bp.route("/templates/<service>", methods=["DELETE"])
def delete_template(service):
    _registry().delete_template(service)
    return "", 204


# ═════════════════════════════════════════════════════════════════════════
# Client view
# ═════════════════════════════════════════════════════════════════════════


@scoping_form_bp.route("/client/<int:client_id>/service/<service>", methods=["GET"])
def get_client_form(client_id, service):
    return jsonify(_registry().get_client_form(client_id, service)), 200


@scoping_form_bp.route("/client/<int:client_id>/service/<service>/projection", methods=["GET"])
def get_client_projection(client_id, service):
    return jsonify(_registry().render_projection(client_id, service)), 200


@scoping_form_bp.route("/client/<int:client_id>/service/<service>/html", methods=["GET"])
def get_client_form_html(client_id, service):
    projection = _registry().render_projection(client_id, service)
    return render_template("scoping_form.html", projection=projection), 200


# ═════════════════════════════════════════════════════════════════════════
# Submission
# ═════════════════════════════════════════════════════════════════════════


@scoping_form_bp.route("/client-submission", methods=["POST"])
@_submission_limit
def submit_client_form():
    """Body: {clientId, service, answers, notes?, status?}."""
    data = json_body()
    result = _registry().submit(
        data.get("clientId"),
        data.get("service"),
        data.get("answers"),
        data.get("notes"),
        data.get("status"),
        actor_id=actor_id(),
    )
    return jsonify({
        "form": result.form.to_dict(),
        "clientProfile": result.client_profile.to_dict(),
    }), 200
