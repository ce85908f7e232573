"""
Consultant Lifecycle Service.

Owns the ConsultantProfile status machine:

    PENDING_REVIEW      ──invite──▶ INTERVIEW_SCHEDULED
    INTERVIEW_INVITED   ──invite──▶ INTERVIEW_SCHEDULED
    INTERVIEW_SCHEDULED ──invite──▶ INTERVIEW_SCHEDULED   (reschedule)
    any non-terminal    ──review──▶ APPROVED | REJECTED

INTERVIEW_INVITED is kept for stored rows and accepted as an invite source;
``invite`` always records a concrete date and therefore lands in
INTERVIEW_SCHEDULED. Inviting a scheduled consultant again replaces the link
and date. APPROVED and REJECTED are terminal.

Scoring rule: score >= 3 approves, anything lower rejects, and
``is_allowed_to_login`` follows the outcome. Every mutation is a single-row
update committed through ``unit_of_work``.

Usage:
    from grc_portal.services.consultant_lifecycle import ConsultantLifecycle

    lifecycle = ConsultantLifecycle(db.session)
    lifecycle.invite(consultant_id, "https://meet.example.org/abc", "2031-05-01T10:00:00Z")
    lifecycle.review(consultant_id, 4, "Strong ISO 27001 background")
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timezone
from typing import Callable

from sqlalchemy import select

from grc_portal.core.exceptions import NotFoundError, ValidationError
from grc_portal.models.consultant import (
    CONSULTANT_TRANSITIONS,
    PROFILE_FIELDS,
    WORKFLOW_FIELDS,
    ConsultantProfile,
)
from grc_portal.models.enums import (
    AccountRole,
    ConsultantStatus,
    ServiceType,
    parse_enum,
)
from grc_portal.services.account_directory import AccountDirectory, normalize_email
from grc_portal.services.helpers.unit_of_work import read_or_raise, unit_of_work
from grc_portal.services.interview_rubric import summarize_rubric

logger = logging.getLogger(__name__)

PASS_SCORE = 3
MIN_SCORE = 0
MAX_SCORE = 5

_URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)

_REQUIRED_SIGNUP_FIELDS = ("contactFirstName", "contactLastName", "phone")


class InvalidTransitionError(ValidationError):
    """Raised when an action is not allowed from the consultant's current status."""

    def __init__(self, consultant_id, action: str, current: str) -> None:
        super().__init__(
            f"Cannot '{action}' consultant {consultant_id} (status={current})",
            details={"action": action, "status": current},
        )
        self.consultant_id = consultant_id
        self.action = action
        self.current_status = current


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value) -> datetime:
    """Parse an ISO-8601 string or datetime; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(
                "scheduledDate must be an ISO-8601 datetime",
                details={"scheduledDate": value},
            ) from None
    else:
        raise ValidationError("scheduledDate is required", details={"scheduledDate": value})

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_birth_date(value) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError("dateOfBirth must be an ISO date", details={"dateOfBirth": value}) from None


def _string_list(value, field: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple, set)) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{field} must be a list of strings", details={field: value})
    # set semantics, first-seen order
    return list(dict.fromkeys(v.strip() for v in value if v.strip()))


def _services(value) -> list[str]:
    return [parse_enum(ServiceType, s, "servicesOffered").value for s in _string_list(value, "servicesOffered")]


def validate_score(score) -> float:
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
        raise ValidationError("score must be a number", details={"score": score})
    if score < MIN_SCORE or score > MAX_SCORE:
        raise ValidationError(
            f"score must be between {MIN_SCORE} and {MAX_SCORE}",
            details={"score": score},
        )
    return float(score)


def validate_interview_link(link) -> str:
    if not isinstance(link, str) or not _URL_RE.match(link.strip()):
        raise ValidationError(
            "interviewLink must be an http(s) URL",
            details={"interviewLink": link},
        )
    return link.strip()


def available_actions(consultant: ConsultantProfile) -> list[str]:
    """Actions the transition table allows from the consultant's current status."""
    return [action for action, rule in CONSULTANT_TRANSITIONS.items() if consultant.status in rule["from"]]


class ConsultantLifecycle:
    """Consultant registration, interview invitation and review."""

    def __init__(self, session, *, clock: Callable[[], datetime] | None = None) -> None:
        self.session = session
        self.clock = clock or _utcnow
        self.accounts = AccountDirectory(session)

    # ── Reads ────────────────────────────────────────────────────────────

    def get(self, consultant_id) -> ConsultantProfile:
        consultant = read_or_raise(self.session.get, ConsultantProfile, consultant_id)
        if consultant is None:
            raise NotFoundError("Consultant", consultant_id)
        return consultant

    def get_by_user(self, user_id) -> ConsultantProfile:
        consultant = read_or_raise(
            lambda: self.session.execute(
                select(ConsultantProfile).where(ConsultantProfile.user_id == user_id)
            ).scalar_one_or_none()
        )
        if consultant is None:
            raise NotFoundError("Consultant for user", user_id)
        return consultant

    def list(self, *, limit: int | None = None, offset: int = 0) -> list[ConsultantProfile]:
        return self._page(select(ConsultantProfile), limit, offset)

    def list_by_status(self, status, *, limit: int | None = None, offset: int = 0) -> list[ConsultantProfile]:
        status = parse_enum(ConsultantStatus, status, "status")
        return self._page(
            select(ConsultantProfile).where(ConsultantProfile.status == status.value),
            limit,
            offset,
        )

    def _page(self, stmt, limit, offset) -> list[ConsultantProfile]:
        stmt = stmt.order_by(ConsultantProfile.created_at.desc(), ConsultantProfile.id.desc())
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return read_or_raise(lambda: self.session.execute(stmt).unique().scalars().all())

    # ── Registration / profile ───────────────────────────────────────────

    def register(self, data: dict) -> ConsultantProfile:
        """Consultant signup: CONSULTANT account + profile in PENDING_REVIEW."""
        email = normalize_email(data.get("email"))
        missing = [f for f in _REQUIRED_SIGNUP_FIELDS if not str(data.get(f) or "").strip()]
        if missing:
            raise ValidationError(
                f"{', '.join(missing)} required",
                details={f: "required" for f in missing},
            )

        with unit_of_work(self.session):
            account = self.accounts.add_account(email, AccountRole.CONSULTANT)
            consultant = ConsultantProfile(
                user_id=account.id,
                email=email,
                contact_first_name=str(data["contactFirstName"]).strip(),
                contact_last_name=str(data["contactLastName"]).strip(),
                phone=str(data["phone"]).strip(),
                organization_website=data.get("organizationWebsite"),
                industry=data.get("industry"),
                position=data.get("position"),
                experience=data.get("experience"),
                date_of_birth=_parse_birth_date(data.get("dateOfBirth")),
                certifications=_string_list(data.get("certifications"), "certifications"),
                cv_url=data.get("cvUrl") or None,
                services_offered=_services(data.get("servicesOffered")),
                other_details=data.get("otherDetails") or None,
                status=ConsultantStatus.PENDING_REVIEW.value,
                is_allowed_to_login=False,
                profile_completed=False,
            )
            self.session.add(consultant)

        logger.info(
            "Consultant registered",
            extra={"consultant_id": consultant.id, "event_type": "consultant.registered"},
        )
        return consultant

    def update_profile(self, consultant_id, data: dict) -> ConsultantProfile:
        """Update profile fields only; workflow fields are owned by invite/review."""
        forbidden = sorted(WORKFLOW_FIELDS & set(data))
        if forbidden:
            raise ValidationError(
                "Workflow fields cannot be changed through a profile update",
                details={"fields": forbidden},
            )
        unknown = sorted(set(data) - set(PROFILE_FIELDS))
        if unknown:
            raise ValidationError("Unknown profile fields", details={"fields": unknown})

        consultant = self.get(consultant_id)
        with unit_of_work(self.session):
            for key, value in data.items():
                if key == "dateOfBirth":
                    value = _parse_birth_date(value)
                elif key == "certifications":
                    value = _string_list(value, key)
                elif key == "servicesOffered":
                    value = _services(value)
                elif key == "profileCompleted":
                    value = bool(value)
                elif key in ("contactFirstName", "contactLastName", "phone"):
                    if not str(value or "").strip():
                        raise ValidationError(f"{key} cannot be empty", details={key: value})
                    value = str(value).strip()
                setattr(consultant, PROFILE_FIELDS[key], value)

        logger.info("Consultant profile updated", extra={"consultant_id": consultant.id})
        return consultant

    # ── Transitions ──────────────────────────────────────────────────────

    def _require_transition(self, consultant: ConsultantProfile, action: str) -> None:
        if consultant.status not in CONSULTANT_TRANSITIONS[action]["from"]:
            raise InvalidTransitionError(consultant.id, action, consultant.status)

    def invite(self, consultant_id, interview_link, scheduled_date) -> ConsultantProfile:
        """Schedule the interview: store link + date, status INTERVIEW_SCHEDULED.

        Raises:
            ValidationError: link is not http(s) or the date is not in the future.
            NotFoundError: unknown consultant.
            InvalidTransitionError: consultant already approved or rejected.
        """
        link = validate_interview_link(interview_link)
        when = _as_utc(scheduled_date)
        now = self.clock()
        if when <= now:
            raise ValidationError(
                "scheduledDate must be in the future",
                details={"scheduledDate": when.isoformat(), "now": now.isoformat()},
            )

        consultant = self.get(consultant_id)
        self._require_transition(consultant, "invite")

        previous = consultant.status
        with unit_of_work(self.session):
            consultant.status = ConsultantStatus.INTERVIEW_SCHEDULED.value
            consultant.interview_link = link
            consultant.interview_date = when

        logger.info(
            "Consultant %s invited for interview (%s -> %s) at %s",
            consultant.id,
            previous,
            consultant.status,
            when.isoformat(),
            extra={"consultant_id": consultant.id, "event_type": "consultant.interview_scheduled"},
        )
        return consultant

    def review(self, consultant_id, score, notes: str | None = None) -> ConsultantProfile:
        """Record the interview score and decide: >= 3 approves, otherwise rejects."""
        value = validate_score(score)
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("notes must be a string", details={"notes": notes})

        consultant = self.get(consultant_id)
        self._require_transition(consultant, "review")

        final = ConsultantStatus.APPROVED if value >= PASS_SCORE else ConsultantStatus.REJECTED
        with unit_of_work(self.session):
            consultant.interview_score = value
            consultant.review_notes = notes or None
            consultant.status = final.value
            consultant.is_allowed_to_login = final is ConsultantStatus.APPROVED

        logger.info(
            "Consultant %s reviewed: score=%s status=%s",
            consultant.id,
            value,
            final.value,
            extra={
                "consultant_id": consultant.id,
                "event_type": f"consultant.{final.value.lower()}",
            },
        )
        return consultant

    def review_rubric(self, consultant_id, rubric: dict, notes: str | None = None) -> ConsultantProfile:
        """Reduce a per-criterion rubric to one score, then ``review``."""
        summary = summarize_rubric(rubric)
        return self.review(consultant_id, summary.score, notes or summary.as_notes())
