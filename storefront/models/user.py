import uuid
from datetime import datetime, timezone
from storefront.extensions import db


class User(db.Model):
    __tablename__ = 'users'

    user_id = db.Column(db.UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=True)
    phone_number = db.Column(db.String(20), unique=True, nullable=True)
    phone_number_verified = db.Column(db.Boolean, nullable=False, default=False)
    is_anonymous = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self):
        return {
            'id': str(self.user_id),
            'name': self.name,
            'email': self.email,
            'phoneNumber': self.phone_number,
            'phoneNumberVerified': self.phone_number_verified,
            'isAnonymous': self.is_anonymous,
        }

    def to_summary(self):
        return {
            'id': str(self.user_id),
            'name': self.name,
            'email': self.email,
        }
