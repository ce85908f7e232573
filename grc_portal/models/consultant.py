"""
ConsultantProfile model.

Workflow fields (status, interview_*, review_notes, is_allowed_to_login) are
written only by ``ConsultantLifecycle``; the profile fields are plain
pass-through data collected by the onboarding wizard.

Invariants kept by the lifecycle service:
    - status only moves along CONSULTANT_TRANSITIONS
    - is_allowed_to_login is True iff status == APPROVED
    - interview_score, when set, lies in [0, 5]
"""

from __future__ import annotations

from datetime import datetime, timezone

from grc_portal.models import db
from grc_portal.models.enums import ConsultantStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value) -> str | None:
    return value.isoformat() if value else None


TERMINAL_STATUSES = frozenset({ConsultantStatus.APPROVED.value, ConsultantStatus.REJECTED.value})

# action -> allowed source statuses and target status. "invite" from
# INTERVIEW_SCHEDULED reschedules. "review" resolves its target from the
# score, so it lists both terminal outcomes.
CONSULTANT_TRANSITIONS = {
    "invite": {
        "from": [
            ConsultantStatus.PENDING_REVIEW.value,
            ConsultantStatus.INTERVIEW_INVITED.value,
            ConsultantStatus.INTERVIEW_SCHEDULED.value,
        ],
        "to": [ConsultantStatus.INTERVIEW_SCHEDULED.value],
    },
    "review": {
        "from": [s.value for s in ConsultantStatus if s.value not in TERMINAL_STATUSES],
        "to": [ConsultantStatus.APPROVED.value, ConsultantStatus.REJECTED.value],
    },
}

# Fields a profile update may touch. Anything else in an update payload is
# either unknown or a workflow field owned by the lifecycle service.
PROFILE_FIELDS = {
    "contactFirstName": "contact_first_name",
    "contactLastName": "contact_last_name",
    "phone": "phone",
    "organizationWebsite": "organization_website",
    "industry": "industry",
    "position": "position",
    "experience": "experience",
    "dateOfBirth": "date_of_birth",
    "certifications": "certifications",
    "cvUrl": "cv_url",
    "servicesOffered": "services_offered",
    "otherDetails": "other_details",
    "profileCompleted": "profile_completed",
}

WORKFLOW_FIELDS = frozenset({
    "status",
    "interviewLink",
    "interviewDate",
    "interviewScore",
    "reviewNotes",
    "isAllowedToLogin",
})


class ConsultantProfile(db.Model):
    __tablename__ = "consultant_profiles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    email = db.Column(db.String(255), nullable=False)

    # Profile
    contact_first_name = db.Column(db.String(100), nullable=False)
    contact_last_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(50), nullable=False)
    organization_website = db.Column(db.String(500))
    industry = db.Column(db.String(100))
    position = db.Column(db.String(100))
    experience = db.Column(db.String(100))
    date_of_birth = db.Column(db.Date)
    certifications = db.Column(db.JSON, nullable=False, default=list)
    cv_url = db.Column(db.String(1000), comment="Opaque URL issued by the file-storage collaborator")
    services_offered = db.Column(db.JSON, nullable=False, default=list)
    other_details = db.Column(db.Text)

    # Workflow
    status = db.Column(
        db.String(30),
        nullable=False,
        default=ConsultantStatus.PENDING_REVIEW.value,
        index=True,
    )
    interview_link = db.Column(db.String(1000))
    interview_date = db.Column(db.DateTime(timezone=True))
    interview_score = db.Column(db.Float)
    review_notes = db.Column(db.Text)
    is_allowed_to_login = db.Column(db.Boolean, nullable=False, default=False)
    profile_completed = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    account = db.relationship("Account", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "email": self.email,
            "contactFirstName": self.contact_first_name,
            "contactLastName": self.contact_last_name,
            "phone": self.phone,
            "organizationWebsite": self.organization_website,
            "industry": self.industry,
            "position": self.position,
            "experience": self.experience,
            "dateOfBirth": _iso(self.date_of_birth),
            "certifications": list(self.certifications or []),
            "cvUrl": self.cv_url,
            "servicesOffered": list(self.services_offered or []),
            "otherDetails": self.other_details,
            "status": self.status,
            "interviewLink": self.interview_link,
            "interviewDate": _iso(self.interview_date),
            "interviewScore": self.interview_score,
            "reviewNotes": self.review_notes,
            "isAllowedToLogin": self.is_allowed_to_login,
            "profileCompleted": self.profile_completed,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<ConsultantProfile #{self.id} {self.email} {self.status}>"
