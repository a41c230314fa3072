"""
Entry models: milk deliveries, electricity bills and rent payments.
Every entry belongs to exactly one Record and inherits its visibility.
"""
from decimal import Decimal

from extensions import db


MILK_STATUS_BOUGHT = 'Bought'
MILK_STATUS_LEAVE = 'Leave'
MILK_STATUSES = (MILK_STATUS_BOUGHT, MILK_STATUS_LEAVE)


def _money(value):
    return float(value) if value is not None else None


class MilkEntry(db.Model):
    __tablename__ = 'milk_entries'

    id = db.Column(db.Integer, primary_key=True)
    record_id = db.Column(db.Integer, db.ForeignKey('records.id', ondelete='CASCADE'),
                          nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    quantity_liters = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    # Snapshot of the admin's rate when the entry was created
    rate_per_liter = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=MILK_STATUS_BOUGHT)
    total_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    admin_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)

    record = db.relationship('Record', back_populates='milk_entries')

    @staticmethod
    def compute_total(quantity, rate, status):
        """Quantity x rate, or zero on leave days."""
        if status == MILK_STATUS_LEAVE:
            return Decimal('0.00')
        return (Decimal(str(quantity)) * Decimal(str(rate))).quantize(Decimal('0.01'))

    def to_dict(self):
        return {
            'id': self.id,
            'record_id': self.record_id,
            'date': self.date.isoformat(),
            'quantity_liters': _money(self.quantity_liters),
            'rate_per_liter': _money(self.rate_per_liter),
            'status': self.status,
            'total_cost': _money(self.total_cost),
            'admin_id': self.admin_id,
        }

    def __repr__(self):
        return f'<MilkEntry {self.date} {self.status}>'


class ElectricityBill(db.Model):
    __tablename__ = 'electricity_bills'

    id = db.Column(db.Integer, primary_key=True)
    record_id = db.Column(db.Integer, db.ForeignKey('records.id', ondelete='CASCADE'),
                          nullable=False, index=True)
    month = db.Column(db.String(7), nullable=False)  # YYYY-MM
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    reference_number = db.Column(db.String(100), nullable=False)
    file_path = db.Column(db.String(255), nullable=True)  # blob store reference
    admin_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)

    record = db.relationship('Record', back_populates='bills')

    def to_dict(self):
        return {
            'id': self.id,
            'record_id': self.record_id,
            'month': self.month,
            'amount': _money(self.amount),
            'reference_number': self.reference_number,
            'file_path': self.file_path,
            'admin_id': self.admin_id,
        }

    def __repr__(self):
        return f'<ElectricityBill {self.month} {self.reference_number}>'


class RentEntry(db.Model):
    __tablename__ = 'rent_entries'

    id = db.Column(db.Integer, primary_key=True)
    record_id = db.Column(db.Integer, db.ForeignKey('records.id', ondelete='CASCADE'),
                          nullable=False, index=True)
    month = db.Column(db.String(7), nullable=False)  # YYYY-MM
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    admin_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)

    record = db.relationship('Record', back_populates='rent_entries')

    def to_dict(self):
        return {
            'id': self.id,
            'record_id': self.record_id,
            'month': self.month,
            'amount': _money(self.amount),
            'admin_id': self.admin_id,
        }

    def __repr__(self):
        return f'<RentEntry {self.month}>'
