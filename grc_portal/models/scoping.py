"""
ScopingForm model — one table, two roles.

A row with ``client_id IS NULL`` is the question template for its service; a
row with a client account id is that client's answers for the service. The
column stays nullable for storage compatibility, but business code branches
on the decoded ``kind`` (``Template`` or ``Instance``), never on the raw
column.

Uniqueness (enforced by the database, not only by the service):
    - one template per service      (partial unique index, client_id IS NULL)
    - one instance per client+service (unique constraint)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from grc_portal.models import db
from grc_portal.models.enums import ScopingFormStatus

QUESTION_TYPES = frozenset({"text", "radio", "checkbox"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Template:
    """Reusable question schema for a service type."""


@dataclass(frozen=True)
class Instance:
    """One client's copy of a template's questions plus their answers."""

    client_account_id: int


class ScopingForm(db.Model):
    __tablename__ = "scoping_forms"
    __table_args__ = (
        db.UniqueConstraint("client_id", "service", name="uq_scoping_form_client_service"),
        db.Index(
            "uq_scoping_form_template_service",
            "service",
            unique=True,
            sqlite_where=db.text("client_id IS NULL"),
            postgresql_where=db.text("client_id IS NULL"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    service = db.Column(db.String(80), nullable=False, index=True)
    client_id = db.Column(
        db.Integer,
        db.ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=True,
        comment="NULL = template; otherwise the client account owning this instance",
    )
    questions = db.Column(db.JSON, nullable=False, default=list)
    answers = db.Column(db.JSON, nullable=False, default=dict)
    status = db.Column(
        db.String(20),
        nullable=False,
        default=ScopingFormStatus.PENDING.value,
    )
    created_by_id = db.Column(
        db.Integer,
        db.ForeignKey("accounts.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    @property
    def kind(self) -> Template | Instance:
        if self.client_id is None:
            return Template()
        return Instance(client_account_id=self.client_id)

    @classmethod
    def new_template(cls, service: str, questions: list[dict], created_by_id: int | None) -> "ScopingForm":
        return cls(
            service=service,
            client_id=None,
            questions=questions,
            answers={},
            status=ScopingFormStatus.PENDING.value,
            created_by_id=created_by_id,
        )

    @classmethod
    def new_instance(
        cls,
        template: "ScopingForm",
        kind: Instance,
        questions: list[dict],
        answers: dict,
        status: str,
        created_by_id: int | None,
    ) -> "ScopingForm":
        """Create a client instance holding its own copy of the decoded questions."""
        return cls(
            service=template.service,
            client_id=kind.client_account_id,
            questions=[dict(q) for q in questions],
            answers=dict(answers),
            status=status,
            created_by_id=created_by_id,
        )

    def to_dict(self) -> dict:
        kind = self.kind
        return {
            "id": self.id,
            "service": self.service,
            "kind": "instance" if isinstance(kind, Instance) else "template",
            "clientId": kind.client_account_id if isinstance(kind, Instance) else None,
            "questions": self.questions,
            "answers": self.answers or {},
            "status": self.status,
            "createdById": self.created_by_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<ScopingForm #{self.id} {self.service} {self.kind}>"
