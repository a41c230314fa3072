from datetime import datetime, timezone

from extensions import db


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Settings(db.Model):
    """Per-admin preferences.  One row per admin, upserted."""
    __tablename__ = 'settings'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                        unique=True, nullable=False)
    milk_rate_per_liter = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'milk_rate_per_liter': float(self.milk_rate_per_liter),
        }

    def __repr__(self):
        return f'<Settings user={self.user_id} rate={self.milk_rate_per_liter}>'
