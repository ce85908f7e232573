"""
Scoping Form Registry.

Resolves the template/instance pair behind a client's scoping form and merges
submitted answers into it.

    template  — one per service, the question schema admins edit
    instance  — one per (client account, service), created lazily on the first
                submission with a copy of the template's questions, then
                updated in place

``submit`` writes the instance and the client profile's shadow state
(onboarding_status, admin_review_notes, scoping_details) in one transaction.
Two first-time submissions racing for the same client/service are resolved by
the database unique constraint: the loser's transaction is rolled back and
replayed once, at which point it finds the winner's row and updates it.

Usage:
    registry = ScopingFormRegistry(db.session)
    registry.create_template("AUDIT", [{"id": "q1", "text": "Scope?", "type": "text", "options": []}], admin_id)
    result = registry.submit(client_profile_id, "AUDIT", {"q1": "Full network"}, notes="urgent")
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from grc_portal.core.exceptions import ConflictError, NotFoundError, ValidationError
from grc_portal.models.client import ClientProfile
from grc_portal.models.enums import (
    ClientOnboardingStatus,
    ScopingFormStatus,
    ServiceType,
    parse_enum,
)
from grc_portal.models.scoping import QUESTION_TYPES, Instance, ScopingForm
from grc_portal.services.account_directory import AccountDirectory
from grc_portal.services.helpers.unit_of_work import read_or_raise, unit_of_work

logger = logging.getLogger(__name__)

LIST_KINDS = frozenset({"template", "instance", "all"})


class _DuplicateInstance(Exception):
    """Another transaction created the instance between our lookup and insert."""


@dataclass
class SubmissionResult:
    form: ScopingForm
    client_profile: ClientProfile


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Question schema ──────────────────────────────────────────────────────────


def normalize_questions(questions) -> list[dict]:
    """Validate a question schema supplied by an admin.

    Each question is ``{id, text, type, options}``; ids are unique, text
    questions carry no options, radio/checkbox questions need at least one.
    """
    if not isinstance(questions, list) or not questions:
        raise ValidationError("questions must be a non-empty list")

    normalized = []
    seen = set()
    for index, q in enumerate(questions):
        if not isinstance(q, dict):
            raise ValidationError("Each question must be an object", details={"index": index})
        qid = q.get("id")
        text = q.get("text")
        qtype = q.get("type", "text")
        options = q.get("options") or []

        if not isinstance(qid, str) or not qid.strip():
            raise ValidationError("Question id is required", details={"index": index})
        qid = qid.strip()
        if qid in seen:
            raise ValidationError("Question ids must be unique", details={"id": qid})
        seen.add(qid)
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Question text is required", details={"id": qid})
        if qtype not in QUESTION_TYPES:
            raise ValidationError(
                f"Question type must be one of {sorted(QUESTION_TYPES)}",
                details={"id": qid, "type": qtype},
            )
        if not isinstance(options, list) or not all(isinstance(o, str) and o.strip() for o in options):
            raise ValidationError("Question options must be non-empty strings", details={"id": qid})
        if qtype == "text" and options:
            raise ValidationError("Text questions do not take options", details={"id": qid})
        if qtype != "text" and not options:
            raise ValidationError(f"{qtype} questions need at least one option", details={"id": qid})

        normalized.append({"id": qid, "text": text.strip(), "type": qtype, "options": list(options)})
    return normalized


def decode_questions(raw) -> list[dict]:
    """Decode stored questions, which may be a JSON document string or a list."""
    if raw is None:
        return []
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ValidationError("Stored questions are not a valid JSON document") from None
    if not isinstance(raw, list):
        raise ValidationError("Stored questions must decode to a list")

    decoded = []
    for q in raw:
        if not isinstance(q, dict):
            continue
        decoded.append({
            "id": str(q.get("id", "")),
            "text": q.get("text") or "",
            "type": q.get("type") or "text",
            "options": list(q.get("options") or []),
        })
    return decoded


def decode_answers(raw) -> dict:
    if not raw:
        return {}
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ValidationError("Stored answers are not a valid JSON document") from None
    if not isinstance(raw, dict):
        raise ValidationError("Stored answers must decode to an object")
    return raw


def _is_answered(value) -> bool:
    return value not in (None, "", [], {})


class ScopingFormRegistry:
    """Templates, client instances and answer submission for scoping forms."""

    def __init__(
        self,
        session,
        *,
        accounts: AccountDirectory | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.session = session
        self.accounts = accounts or AccountDirectory(session)
        self.clock = clock or _utcnow

    # ── Lookups ──────────────────────────────────────────────────────────

    def _find_template(self, service: ServiceType) -> ScopingForm | None:
        return read_or_raise(
            lambda: self.session.execute(
                select(ScopingForm).where(
                    ScopingForm.service == service.value,
                    ScopingForm.client_id.is_(None),
                )
            ).scalar_one_or_none()
        )

    def _find_instance(self, kind: Instance, service: ServiceType) -> ScopingForm | None:
        return read_or_raise(
            lambda: self.session.execute(
                select(ScopingForm).where(
                    ScopingForm.service == service.value,
                    ScopingForm.client_id == kind.client_account_id,
                )
            ).scalar_one_or_none()
        )

    # ── Templates ────────────────────────────────────────────────────────

    def create_template(self, service, questions, created_by_id=None) -> ScopingForm:
        """Create the template for a service. A second template conflicts."""
        service = parse_enum(ServiceType, service, "service")
        normalized = normalize_questions(questions)
        if created_by_id is not None:
            self.accounts.require_account(created_by_id)

        with unit_of_work(self.session):
            if self._find_template(service) is not None:
                raise ConflictError("ScopingForm template", "service", service.value)
            form = ScopingForm.new_template(service.value, normalized, created_by_id)
            self.session.add(form)
            try:
                self.session.flush()
            except IntegrityError:
                raise ConflictError("ScopingForm template", "service", service.value) from None

        logger.info(
            "Scoping template created for %s (%d questions)",
            service.value,
            len(normalized),
            extra={"service": service.value, "event_type": "scoping.template_created"},
        )
        return form

    def get_template(self, service) -> ScopingForm:
        service = parse_enum(ServiceType, service, "service")
        form = self._find_template(service)
        if form is None:
            raise NotFoundError("ScopingForm template", service.value)
        return form

    def update_template(self, service, questions, actor_id=None) -> ScopingForm:
        """Replace a template's questions. Existing instances keep their copy."""
        form = self.get_template(service)
        normalized = normalize_questions(questions)
        if actor_id is not None:
            self.accounts.require_account(actor_id)
        with unit_of_work(self.session):
            form.questions = normalized
            form.updated_at = self.clock()
        logger.info(
            "Scoping template updated for %s by actor=%s",
            form.service,
            actor_id,
            extra={"service": form.service, "actor_id": actor_id, "event_type": "scoping.template_updated"},
        )
        return form

    def delete_template(self, service) -> None:
        form = self.get_template(service)
        name = form.service
        with unit_of_work(self.session):
            self.session.delete(form)
        logger.info(
            "Scoping template deleted for %s",
            name,
            extra={"service": name, "event_type": "scoping.template_deleted"},
        )

    def list_forms(
        self,
        *,
        kind: str = "all",
        limit: int | None = None,
        offset: int = 0,
        order: str = "desc",
    ) -> list[ScopingForm]:
        if kind not in LIST_KINDS:
            raise ValidationError(f"kind must be one of {sorted(LIST_KINDS)}", details={"kind": kind})
        if order not in ("asc", "desc"):
            raise ValidationError("order must be 'asc' or 'desc'", details={"order": order})

        stmt = select(ScopingForm)
        if kind == "template":
            stmt = stmt.where(ScopingForm.client_id.is_(None))
        elif kind == "instance":
            stmt = stmt.where(ScopingForm.client_id.is_not(None))
        if order == "asc":
            stmt = stmt.order_by(ScopingForm.created_at.asc(), ScopingForm.id.asc())
        else:
            stmt = stmt.order_by(ScopingForm.created_at.desc(), ScopingForm.id.desc())
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return read_or_raise(lambda: self.session.execute(stmt).scalars().all())

    # ── Client view ──────────────────────────────────────────────────────

    def get_client_form(self, client_id, service) -> dict:
        """Merged view: template questions + the client's answers, notes and status."""
        service = parse_enum(ServiceType, service, "service")
        profile = self.accounts.get_client_profile(client_id)
        kind = Instance(client_account_id=profile.account_id)
        template = self.get_template(service)
        instance = self._find_instance(kind, service)

        details = profile.scoping_details or {}
        notes = details.get("notes") if isinstance(details, dict) else None
        if notes is None:
            notes = profile.admin_review_notes

        return {
            "clientId": profile.id,
            "accountId": kind.client_account_id,
            "service": service.value,
            "template": template.to_dict(),
            "instance": instance.to_dict() if instance is not None else None,
            "formId": instance.id if instance is not None else None,
            "questions": decode_questions(template.questions),
            "answers": decode_answers(instance.answers) if instance is not None else {},
            "notes": notes,
            "status": instance.status if instance is not None else ScopingFormStatus.PENDING.value,
        }

    def render_projection(self, client_id, service) -> dict:
        """Display-ready question/answer pairs. Read-only."""
        view = self.get_client_form(client_id, service)
        answers = view["answers"]
        items = []
        for q in view["questions"]:
            answer = answers.get(q["id"])
            items.append({
                "id": q["id"],
                "text": q["text"],
                "type": q["type"],
                "options": q["options"],
                "answer": answer,
                "answered": _is_answered(answer),
            })
        return {
            "clientId": view["clientId"],
            "service": view["service"],
            "formId": view["formId"],
            "status": view["status"],
            "notes": view["notes"],
            "items": items,
            "answeredCount": sum(1 for i in items if i["answered"]),
            "questionCount": len(items),
        }

    # ── Submission ───────────────────────────────────────────────────────

    def submit(self, client_id, service, answers, notes=None, status=None, *, actor_id=None) -> SubmissionResult:
        """Merge answers into the client's instance and update the profile shadow state.

        Raises:
            ValidationError: empty client/service/answers, bad status literal, unknown actor.
            NotFoundError: unknown client profile or no template for the service.
            ConflictError: the instance could not be created or found after a race.
        """
        if client_id in (None, ""):
            raise ValidationError("clientId is required", details={"clientId": client_id})
        if service in (None, ""):
            raise ValidationError("service is required", details={"service": service})
        service = parse_enum(ServiceType, service, "service")
        if not isinstance(answers, dict) or not answers:
            raise ValidationError("answers must be a non-empty object", details={"answers": answers})
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("notes must be a string", details={"notes": notes})
        status = parse_enum(ScopingFormStatus, status or ScopingFormStatus.SUBMITTED.value, "status")
        if actor_id is not None:
            self.accounts.require_account(actor_id)

        try:
            return self._submit_once(client_id, service, answers, notes, status, actor_id)
        except _DuplicateInstance:
            logger.info(
                "Concurrent first submission for client=%s service=%s; retrying as update",
                client_id,
                service.value,
                extra={"client_id": client_id, "service": service.value},
            )
        try:
            return self._submit_once(client_id, service, answers, notes, status, actor_id)
        except _DuplicateInstance:
            raise ConflictError("ScopingForm instance", "clientId+service", f"{client_id}/{service.value}") from None

    def _submit_once(self, client_id, service, answers, notes, status, actor_id) -> SubmissionResult:
        now = self.clock()
        with unit_of_work(self.session):
            profile = self.accounts.get_client_profile(client_id)
            template = self.get_template(service)
            kind = Instance(client_account_id=profile.account_id)

            form = self._find_instance(kind, service)
            created = form is None
            if created:
                questions = decode_questions(template.questions)
                self._check_answer_keys(questions, answers, client_id, service)
                form = ScopingForm.new_instance(
                    template,
                    kind,
                    questions,
                    answers,
                    status.value,
                    actor_id if actor_id is not None else kind.client_account_id,
                )
                self.session.add(form)
                try:
                    self.session.flush()
                except IntegrityError as exc:
                    raise _DuplicateInstance() from exc
            else:
                self._check_answer_keys(decode_questions(form.questions), answers, client_id, service)
                form.answers = dict(answers)
                form.status = status.value
                form.updated_at = now

            self._write_shadow_state(profile, form, notes, status, now)

        logger.info(
            "Scoping form %s for client=%s service=%s status=%s",
            "created" if created else "updated",
            profile.id,
            service.value,
            status.value,
            extra={
                "client_id": profile.id,
                "service": service.value,
                "event_type": "scoping.submitted",
            },
        )
        return SubmissionResult(form=form, client_profile=profile)

    def _write_shadow_state(self, profile: ClientProfile, form: ScopingForm, notes, status, now) -> None:
        profile.onboarding_status = ClientOnboardingStatus.SCOPING_REVIEW.value
        if notes is not None:
            profile.admin_review_notes = notes
        profile.scoping_details = {
            "service": form.service,
            "formId": form.id,
            "notes": notes,
            "submittedAt": now.isoformat(),
            "status": status.value,
        }
        profile.updated_at = now

    def _check_answer_keys(self, questions: list[dict], answers: dict, client_id, service: ServiceType) -> None:
        """Soft check: answers for unknown question ids are logged, not rejected."""
        known = {q["id"] for q in questions}
        unknown = sorted(set(map(str, answers)) - known)
        if unknown:
            logger.warning(
                "Scoping answers reference unknown question ids %s (client=%s service=%s)",
                unknown,
                client_id,
                service.value,
                extra={"client_id": client_id, "service": service.value},
            )
