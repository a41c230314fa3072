"""
Record and RecordViewer models.

A Record is a named container of one entry type owned by an admin.
RecordViewer is the grant linking a viewer to a record:

    allow_viewer_access  is_accepted   state
    -------------------  -----------   --------
    True                 False         Invited
    True                 True          Active
    False                (any)         Revoked

Only Active rows confer read access.
"""
from extensions import db


RECORD_TYPE_MILK = 'Milk'
RECORD_TYPE_BILL = 'Bill'
RECORD_TYPE_RENT = 'Rent'
RECORD_TYPES = (RECORD_TYPE_MILK, RECORD_TYPE_BILL, RECORD_TYPE_RENT)


class Record(db.Model):
    __tablename__ = 'records'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    type = db.Column(db.String(20), nullable=False)
    owner_user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                              nullable=False, index=True)

    owner = db.relationship('User', back_populates='records')
    viewers = db.relationship('RecordViewer', back_populates='record',
                              cascade='all, delete-orphan')
    milk_entries = db.relationship('MilkEntry', back_populates='record',
                                   cascade='all, delete-orphan')
    bills = db.relationship('ElectricityBill', back_populates='record',
                            cascade='all, delete-orphan')
    rent_entries = db.relationship('RentEntry', back_populates='record',
                                   cascade='all, delete-orphan')

    def entries(self):
        """Return this record's entries for its type, ordered for display."""
        if self.type == RECORD_TYPE_MILK:
            return sorted(self.milk_entries, key=lambda e: (e.date, e.id))
        if self.type == RECORD_TYPE_BILL:
            return sorted(self.bills, key=lambda e: (e.month, e.id))
        return sorted(self.rent_entries, key=lambda e: (e.month, e.id))

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'owner_user_id': self.owner_user_id,
            'created_by': self.owner.full_name if self.owner else None,
        }

    def __repr__(self):
        return f'<Record {self.id} {self.name} ({self.type})>'


class RecordViewer(db.Model):
    """One viewer's access grant to one record.  The composite key keeps it unique per pair."""
    __tablename__ = 'record_viewers'

    record_id = db.Column(db.Integer, db.ForeignKey('records.id', ondelete='CASCADE'),
                          primary_key=True)
    viewer_user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                               primary_key=True, index=True)
    allow_viewer_access = db.Column(db.Boolean, nullable=False, default=True)
    is_accepted = db.Column(db.Boolean, nullable=False, default=False)

    record = db.relationship('Record', back_populates='viewers')
    viewer = db.relationship('User', back_populates='viewer_links')

    @property
    def is_active(self):
        return bool(self.allow_viewer_access and self.is_accepted)

    @property
    def state(self):
        if not self.allow_viewer_access:
            return 'Revoked'
        return 'Active' if self.is_accepted else 'Invited'

    def to_dict(self):
        return {
            'record_id': self.record_id,
            'viewer_user_id': self.viewer_user_id,
            'allow_viewer_access': self.allow_viewer_access,
            'is_accepted': self.is_accepted,
            'state': self.state,
        }

    def __repr__(self):
        return f'<RecordViewer record={self.record_id} viewer={self.viewer_user_id} {self.state}>'
