"""
ClientProfile model.

``onboarding_status`` and ``scoping_details`` shadow the state of the
client's scoping-form instance. ``ScopingFormRegistry.submit`` rewrites both
in the same transaction as the form, so they never disagree with it.
"""

from datetime import datetime, timezone

from grc_portal.models import db
from grc_portal.models.enums import ClientOnboardingStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ClientProfile(db.Model):
    __tablename__ = "client_profiles"

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(
        db.Integer,
        db.ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    full_name = db.Column(db.String(200), nullable=False)
    organization = db.Column(db.String(200), nullable=False)
    phone_number = db.Column(db.String(50))
    onboarding_status = db.Column(
        db.String(30),
        nullable=False,
        default=ClientOnboardingStatus.NOT_STARTED.value,
        index=True,
    )
    admin_review_notes = db.Column(db.Text)
    scoping_details = db.Column(
        db.JSON,
        nullable=True,
        comment="Snapshot {service, formId, notes, submittedAt, status} of the last submission",
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    account = db.relationship("Account", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.account_id,
            "email": self.account.email if self.account else None,
            "fullName": self.full_name,
            "organization": self.organization,
            "phoneNumber": self.phone_number,
            "onboardingStatus": self.onboarding_status,
            "adminReviewNotes": self.admin_review_notes,
            "scopingDetails": self.scoping_details,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<ClientProfile #{self.id} {self.organization} {self.onboarding_status}>"
