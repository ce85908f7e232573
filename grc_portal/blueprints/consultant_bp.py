"""Consultant onboarding blueprint.

REST API for consultant signup, profile maintenance and the interview
workflow (invite → review).

Endpoint groups:
  Signup / listing     POST /api/v1/consultants
                       GET  /api/v1/consultants
                       GET  /api/v1/consultants/by-status/<status>
  Profile              GET/PUT /api/v1/consultants/<id>
                       GET  /api/v1/consultants/user/<user_id>
  Interview workflow   POST /api/v1/consultants/<id>/invite
                       POST /api/v1/consultants/<id>/review

Service layer owns all business logic and commits. Exceptions map to JSON
errors in the app-level handlers.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify

from grc_portal import limiter
from grc_portal.core.exceptions import ValidationError
from grc_portal.middleware.rate_limiter import SUBMISSION_LIMIT
from grc_portal.models import db
from grc_portal.services.consultant_lifecycle import ConsultantLifecycle, available_actions
from grc_portal.utils.helpers import actor_id, json_body, pagination_args

logger = logging.getLogger(__name__)

consultant_bp = Blueprint("consultant", __name__, url_prefix="/api/v1/consultants")

_registration_limit = limiter.shared_limit(SUBMISSION_LIMIT, scope="registration")


def _lifecycle() -> ConsultantLifecycle:
    return ConsultantLifecycle(db.session)


def _serialize(consultant) -> dict:
    data = consultant.to_dict()
    data["availableActions"] = available_actions(consultant)
    return data


# ═════════════════════════════════════════════════════════════════════════
# Signup / listing
# ═════════════════════════════════════════════════════════════════════════


@consultant_bp.route("", methods=["POST"])
@_registration_limit
def register_consultant():
    """Create a CONSULTANT account and profile awaiting review."""
    consultant = _lifecycle().register(json_body())
    return jsonify(_serialize(consultant)), 201


@consultant_bp.route("", methods=["GET"])
def list_consultants():
    """All consultants, newest first."""
    limit, offset = pagination_args()
    items = _lifecycle().list(limit=limit, offset=offset)
    return jsonify({"items": [_serialize(c) for c in items], "limit": limit, "offset": offset}), 200


@consultant_bp.route("/by-status/<status>", methods=["GET"])
def list_consultants_by_status(status):
    limit, offset = pagination_args()
    items = _lifecycle().list_by_status(status, limit=limit, offset=offset)
    return jsonify({"items": [_serialize(c) for c in items], "limit": limit, "offset": offset}), 200


# ═════════════════════════════════════════════════════════════════════════
# Profile
# ═════════════════════════════════════════════════════════════════════════


@consultant_bp.route("/<int:consultant_id>", methods=["GET"])
def get_consultant(consultant_id):
    return jsonify(_serialize(_lifecycle().get(consultant_id))), 200


@consultant_bp.route("/user/<int:user_id>", methods=["GET"])
def get_consultant_by_user(user_id):
    return jsonify(_serialize(_lifecycle().get_by_user(user_id))), 200


@consultant_bp.route("/<int:consultant_id>", methods=["PUT"])
def update_consultant(consultant_id):
    """Update profile fields. Status and interview fields are rejected."""
    consultant = _lifecycle().update_profile(consultant_id, json_body())
    return jsonify(_serialize(consultant)), 200


# ═════════════════════════════════════════════════════════════════════════
# Interview workflow
# ═════════════════════════════════════════════════════════════════════════


@consultant_bp.route("/<int:consultant_id>/invite", methods=["POST"])
def invite_consultant(consultant_id):
    """Body: {interviewLink, scheduledDate (ISO-8601)}."""
    actor = actor_id()
    data = json_body()
    consultant = _lifecycle().invite(
        consultant_id,
        data.get("interviewLink"),
        data.get("scheduledDate"),
    )
    logger.info("Invite issued by actor=%s", actor, extra={"consultant_id": consultant_id, "actor_id": actor})
    return jsonify(_serialize(consultant)), 200


@consultant_bp.route("/<int:consultant_id>/review", methods=["POST"])
def review_consultant(consultant_id):
    """Body: {score, notes} or {rubric, notes}; exactly one of score/rubric."""
    actor = actor_id()
    data = json_body()
    has_score = data.get("score") is not None
    has_rubric = data.get("rubric") is not None
    if has_score == has_rubric:
        raise ValidationError("Provide exactly one of score or rubric", details={"fields": ["score", "rubric"]})

    lifecycle = _lifecycle()
    if has_rubric:
        consultant = lifecycle.review_rubric(consultant_id, data["rubric"], data.get("notes"))
    else:
        consultant = lifecycle.review(consultant_id, data["score"], data.get("notes"))
    logger.info("Review recorded by actor=%s", actor, extra={"consultant_id": consultant_id, "actor_id": actor})
    return jsonify(_serialize(consultant)), 200
