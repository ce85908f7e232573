"""
Account model — the login identity owned by the external auth collaborator.

Only the fields this service needs are mirrored here: the e-mail used for
duplicate detection and the role that decides which profile table an account
belongs to. Credentials never live in this database.
"""

from datetime import datetime, timezone

from grc_portal.models import db


class Account(db.Model):
    __tablename__ = "accounts"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    role = db.Column(db.String(20), nullable=False, comment="ADMIN | CONSULTANT | CLIENT")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
        }

    def __repr__(self) -> str:
        return f"<Account #{self.id} {self.email} {self.role}>"
