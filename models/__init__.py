# Models package - Import all models for Flask-SQLAlchemy

from models.entries import ElectricityBill, MilkEntry, RentEntry
from models.records import Record, RecordViewer
from models.settings import Settings
from models.users import User

__all__ = [
    'ElectricityBill',
    'MilkEntry',
    'Record',
    'RecordViewer',
    'RentEntry',
    'Settings',
    'User',
]
