"""Client directory blueprint.

Endpoints:
    POST /api/v1/clients                     — register a client account + profile
    GET  /api/v1/clients/<id>                — client profile
    GET  /api/v1/clients/by-status/<status>  — admin dashboard listing, newest first
"""

import logging

from flask import Blueprint, jsonify

from grc_portal import limiter
from grc_portal.middleware.rate_limiter import SUBMISSION_LIMIT
from grc_portal.models import db
from grc_portal.services.account_directory import AccountDirectory
from grc_portal.utils.helpers import json_body

logger = logging.getLogger(__name__)

client_bp = Blueprint("client", __name__, url_prefix="/api/v1/clients")

_registration_limit = limiter.shared_limit(SUBMISSION_LIMIT, scope="registration")


@client_bp.route("", methods=["POST"])
@_registration_limit
def register_client():
    profile = AccountDirectory(db.session).register_client(json_body())
    return jsonify(profile.to_dict()), 201


@client_bp.route("/<int:client_id>", methods=["GET"])
def get_client(client_id):
    return jsonify(AccountDirectory(db.session).get_client_profile(client_id).to_dict()), 200


@client_bp.route("/by-status/<status>", methods=["GET"])
def list_clients_by_status(status):
    items = AccountDirectory(db.session).list_clients_by_status(status)
    return jsonify({"items": [p.to_dict() for p in items]}), 200
