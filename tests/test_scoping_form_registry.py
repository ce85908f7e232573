"""Scoping form registry tests.

Templates (one per service), lazily created client instances, the
transactional submit and the read-only projection.
"""

import json
import logging
from datetime import datetime, timezone

import pytest

from grc_portal.core.exceptions import ConflictError, NotFoundError, StorageError, ValidationError
from grc_portal.models import db
from grc_portal.models.client import ClientProfile
from grc_portal.models.scoping import Instance, ScopingForm, Template
from grc_portal.services.scoping_form_registry import (
    ScopingFormRegistry,
    decode_questions,
    normalize_questions,
)

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

QUESTIONS = [
    {"id": "q1", "text": "Describe the audit scope", "type": "text", "options": []},
    {"id": "q2", "text": "Preferred audit window", "type": "radio", "options": ["Q1", "Q2", "Q3"]},
    {"id": "q3", "text": "Systems in scope", "type": "checkbox", "options": ["ERP", "CRM", "Network"]},
]


def _registry() -> ScopingFormRegistry:
    return ScopingFormRegistry(db.session, clock=lambda: FIXED_NOW)


def _instances() -> list[ScopingForm]:
    return db.session.query(ScopingForm).filter(ScopingForm.client_id.isnot(None)).all()


# ═════════════════════════════════════════════════════════════════════════════
# Question schema
# ═════════════════════════════════════════════════════════════════════════════


class TestQuestionSchema:
    def test_valid_schema_passes_through(self):
        assert normalize_questions(QUESTIONS) == QUESTIONS

    def test_type_defaults_to_text(self):
        assert normalize_questions([{"id": "a", "text": "Why?"}])[0]["type"] == "text"

    @pytest.mark.parametrize(
        "questions",
        [
            [],
            "not a list",
            [{"id": "", "text": "x", "type": "text"}],
            [{"id": "a", "text": "", "type": "text"}],
            [{"id": "a", "text": "x", "type": "dropdown", "options": ["1"]}],
            [{"id": "a", "text": "x", "type": "radio", "options": []}],
            [{"id": "a", "text": "x", "type": "text", "options": ["unexpected"]}],
            [{"id": "a", "text": "x", "type": "checkbox", "options": ["ok", ""]}],
            [{"id": "a", "text": "x"}, {"id": "a", "text": "y"}],
        ],
    )
    def test_invalid_schema_rejected(self, questions):
        with pytest.raises(ValidationError):
            normalize_questions(questions)

    def test_decode_accepts_json_string(self):
        assert decode_questions(json.dumps(QUESTIONS)) == QUESTIONS

    def test_decode_fills_missing_keys(self):
        assert decode_questions([{"id": 7, "text": "Legacy"}]) == [
            {"id": "7", "text": "Legacy", "type": "text", "options": []}
        ]

    def test_decode_rejects_malformed_string(self):
        with pytest.raises(ValidationError):
            decode_questions("[{not json")


# ═════════════════════════════════════════════════════════════════════════════
# Templates
# ═════════════════════════════════════════════════════════════════════════════


class TestTemplates:
    def test_create_and_get(self):
        created = _registry().create_template("AUDIT", QUESTIONS, None)
        fetched = _registry().get_template("AUDIT")

        assert fetched.id == created.id
        assert isinstance(fetched.kind, Template)
        assert fetched.questions == QUESTIONS

    def test_get_twice_returns_identical_questions(self, audit_template):
        first = _registry().get_template("AUDIT").to_dict()["questions"]
        second = _registry().get_template("AUDIT").to_dict()["questions"]
        assert json.dumps(first) == json.dumps(second)

    def test_duplicate_template_conflicts(self, audit_template):
        with pytest.raises(ConflictError):
            _registry().create_template("AUDIT", QUESTIONS)

    def test_duplicate_caught_by_unique_index(self, audit_template, monkeypatch):
        registry = _registry()
        monkeypatch.setattr(registry, "_find_template", lambda service: None)
        with pytest.raises(ConflictError):
            registry.create_template("AUDIT", QUESTIONS)
        assert db.session.query(ScopingForm).count() == 1

    def test_unknown_service(self):
        with pytest.raises(ValidationError) as exc:
            _registry().create_template("ASTROLOGY", QUESTIONS)
        assert "AUDIT" in exc.value.details["validOptions"]

    def test_missing_template(self):
        with pytest.raises(NotFoundError):
            _registry().get_template("RISK_ASSESSMENT")

    def test_update_replaces_questions(self, audit_template):
        updated = _registry().update_template("AUDIT", QUESTIONS[:1])
        assert updated.id == audit_template.id
        assert updated.questions == QUESTIONS[:1]

    def test_update_leaves_instances_alone(self, audit_template, client_profile):
        _registry().submit(client_profile.id, "AUDIT", {"q1": "Everything"})
        _registry().update_template("AUDIT", QUESTIONS[:1])
        assert _instances()[0].questions == QUESTIONS

    def test_delete_keeps_instances(self, audit_template, client_profile):
        _registry().submit(client_profile.id, "AUDIT", {"q1": "Everything"})
        _registry().delete_template("AUDIT")

        with pytest.raises(NotFoundError):
            _registry().get_template("AUDIT")
        assert len(_instances()) == 1

    def test_list_forms_by_kind_and_order(self, audit_template, client_profile):
        _registry().submit(client_profile.id, "AUDIT", {"q1": "Everything"})
        registry = _registry()

        assert [f.client_id for f in registry.list_forms(kind="template")] == [None]
        assert len(registry.list_forms(kind="instance")) == 1
        oldest_first = registry.list_forms(order="asc")
        assert [f.id for f in oldest_first] == [audit_template.id, _instances()[0].id]
        assert [f.id for f in registry.list_forms(order="desc")] == [f.id for f in reversed(oldest_first)]

    @pytest.mark.parametrize("kwargs", [{"kind": "draft"}, {"order": "sideways"}])
    def test_list_forms_rejects_bad_arguments(self, kwargs):
        with pytest.raises(ValidationError):
            _registry().list_forms(**kwargs)


# ═════════════════════════════════════════════════════════════════════════════
# Client view
# ═════════════════════════════════════════════════════════════════════════════


class TestClientForm:
    def test_before_submission(self, audit_template, client_profile):
        view = _registry().get_client_form(client_profile.id, "AUDIT")

        assert view["instance"] is None
        assert view["answers"] == {}
        assert view["status"] == "PENDING"
        assert view["questions"] == QUESTIONS
        assert view["notes"] is None

    def test_notes_fall_back_to_admin_review_notes(self, audit_template, client_profile):
        client_profile.admin_review_notes = "call before Friday"
        db.session.commit()
        assert _registry().get_client_form(client_profile.id, "AUDIT")["notes"] == "call before Friday"

    def test_unknown_client(self, audit_template):
        with pytest.raises(NotFoundError):
            _registry().get_client_form(999, "AUDIT")

    def test_no_template(self, client_profile):
        with pytest.raises(NotFoundError):
            _registry().get_client_form(client_profile.id, "AUDIT")


# ═════════════════════════════════════════════════════════════════════════════
# Submit
# ═════════════════════════════════════════════════════════════════════════════


class TestSubmit:
    def test_first_submission_creates_instance(self, audit_template, client_profile):
        answers = {"q1": "Full network", "q2": "Q2", "q3": ["ERP", "Network"]}
        result = _registry().submit(client_profile.id, "AUDIT", answers, notes="urgent")

        form = result.form
        assert form.kind == Instance(client_account_id=client_profile.account_id)
        assert form.answers == answers
        assert form.status == "SUBMITTED"
        assert form.questions == QUESTIONS

        profile = db.session.get(ClientProfile, client_profile.id)
        assert profile.onboarding_status == "SCOPING_REVIEW"
        assert profile.admin_review_notes == "urgent"
        assert profile.scoping_details == {
            "service": "AUDIT",
            "formId": form.id,
            "notes": "urgent",
            "submittedAt": FIXED_NOW.isoformat(),
            "status": "SUBMITTED",
        }

    def test_round_trip_through_client_view(self, audit_template, client_profile):
        answers = {"q1": "Full network"}
        _registry().submit(client_profile.id, "AUDIT", answers, notes="urgent")

        view = _registry().get_client_form(client_profile.id, "AUDIT")
        assert view["answers"] == answers
        assert view["notes"] == "urgent"
        assert view["status"] == "SUBMITTED"

    def test_resubmission_updates_in_place(self, audit_template, client_profile):
        first = _registry().submit(client_profile.id, "AUDIT", {"q1": "v1"}, notes="first")
        first_id = first.form.id
        second = _registry().submit(client_profile.id, "AUDIT", {"q1": "v2"}, status="APPROVED")

        assert second.form.id == first_id
        assert second.form.answers == {"q1": "v2"}
        assert second.form.status == "APPROVED"
        assert len(_instances()) == 1
        # notes omitted: admin notes keep the previous value
        assert second.client_profile.admin_review_notes == "first"

    @pytest.mark.parametrize(
        "client_id, service, answers, status",
        [
            (None, "AUDIT", {"q1": "x"}, None),
            ("", "AUDIT", {"q1": "x"}, None),
            (1, "", {"q1": "x"}, None),
            (1, "AUDIT", {}, None),
            (1, "AUDIT", ["q1"], None),
            (1, "AUDIT", {"q1": "x"}, "DONE"),
            (1, "UNKNOWN_SERVICE", {"q1": "x"}, None),
        ],
    )
    def test_invalid_input(self, audit_template, client_profile, client_id, service, answers, status):
        with pytest.raises(ValidationError):
            _registry().submit(client_id, service, answers, status=status)
        assert _instances() == []

    def test_unknown_client(self, audit_template):
        with pytest.raises(NotFoundError):
            _registry().submit(404, "AUDIT", {"q1": "x"})

    def test_missing_template(self, client_profile):
        with pytest.raises(NotFoundError):
            _registry().submit(client_profile.id, "AUDIT", {"q1": "x"})
        assert db.session.get(ClientProfile, client_profile.id).onboarding_status == "NOT_STARTED"

    def test_failure_rolls_back_instance_and_profile(self, audit_template, client_profile, monkeypatch):
        registry = _registry()

        def _boom(*args, **kwargs):
            raise StorageError("disk full")

        monkeypatch.setattr(registry, "_write_shadow_state", _boom)
        with pytest.raises(StorageError):
            registry.submit(client_profile.id, "AUDIT", {"q1": "x"}, notes="n")

        assert _instances() == []
        profile = db.session.get(ClientProfile, client_profile.id)
        assert profile.onboarding_status == "NOT_STARTED"
        assert profile.scoping_details is None

    def test_concurrent_first_submission_becomes_update(self, audit_template, client_profile, monkeypatch):
        _registry().submit(client_profile.id, "AUDIT", {"q1": "winner"})

        registry = _registry()
        real_find = registry._find_instance
        calls = []

        def _stale_then_real(kind, service):
            calls.append(kind)
            # first lookup misses, as if the winner had not committed yet
            return None if len(calls) == 1 else real_find(kind, service)

        monkeypatch.setattr(registry, "_find_instance", _stale_then_real)
        result = registry.submit(client_profile.id, "AUDIT", {"q1": "loser"})

        assert len(calls) == 2
        assert len(_instances()) == 1
        assert result.form.answers == {"q1": "loser"}

    def test_unknown_answer_keys_are_logged_not_rejected(self, audit_template, client_profile, caplog):
        with caplog.at_level(logging.WARNING, logger="grc_portal.services.scoping_form_registry"):
            result = _registry().submit(client_profile.id, "AUDIT", {"q1": "x", "q99": "stray"})

        assert result.form.answers == {"q1": "x", "q99": "stray"}
        assert any("q99" in r.getMessage() for r in caplog.records)

    def test_first_submission_decodes_questions_stored_as_json_text(self, audit_template, client_profile):
        audit_template.questions = json.dumps(QUESTIONS)
        db.session.commit()

        result = _registry().submit(client_profile.id, "AUDIT", {"q1": "x"})

        assert result.form.questions == QUESTIONS
        stored = db.session.get(ScopingForm, result.form.id)
        assert stored.questions == QUESTIONS
        assert _registry().get_client_form(client_profile.id, "AUDIT")["questions"] == QUESTIONS

    def test_answer_keys_checked_against_the_instance_copy(self, audit_template, client_profile, caplog):
        _registry().submit(client_profile.id, "AUDIT", {"q1": "x"})
        _registry().update_template("AUDIT", QUESTIONS + [{"id": "q4", "text": "Budget?", "type": "text"}])

        with caplog.at_level(logging.WARNING, logger="grc_portal.services.scoping_form_registry"):
            result = _registry().submit(client_profile.id, "AUDIT", {"q1": "y", "q4": "10k"})

        assert [q["id"] for q in result.form.questions] == ["q1", "q2", "q3"]
        assert any("q4" in r.getMessage() for r in caplog.records)


# ═════════════════════════════════════════════════════════════════════════════
# Projection
# ═════════════════════════════════════════════════════════════════════════════


class TestProjection:
    def test_pairs_questions_with_answers(self, audit_template, client_profile):
        _registry().submit(client_profile.id, "AUDIT", {"q1": "Full network", "q2": "", "q3": ["ERP"]})
        projection = _registry().render_projection(client_profile.id, "AUDIT")

        by_id = {item["id"]: item for item in projection["items"]}
        assert [item["id"] for item in projection["items"]] == ["q1", "q2", "q3"]
        assert by_id["q1"]["answer"] == "Full network"
        assert by_id["q2"]["answered"] is False
        assert by_id["q3"]["answer"] == ["ERP"]
        assert by_id["q3"]["options"] == ["ERP", "CRM", "Network"]
        assert projection["answeredCount"] == 2
        assert projection["questionCount"] == 3

    def test_tolerates_questions_stored_as_json_text(self, audit_template, client_profile):
        audit_template.questions = json.dumps(QUESTIONS)
        db.session.commit()

        projection = _registry().render_projection(client_profile.id, "AUDIT")
        assert [item["text"] for item in projection["items"]] == [q["text"] for q in QUESTIONS]
        assert all(item["answer"] is None for item in projection["items"])

    def test_is_read_only(self, audit_template, client_profile):
        before = db.session.query(ScopingForm).count()
        _registry().render_projection(client_profile.id, "AUDIT")
        assert db.session.query(ScopingForm).count() == before
        assert db.session.get(ClientProfile, client_profile.id).onboarding_status == "NOT_STARTED"
