"""
Settings Service
Per-admin milk rate, read when milk entries are created.
"""
from decimal import Decimal, InvalidOperation

from flask import current_app

from extensions import db
from models.settings import Settings
from utils.errors import ValidationError
from utils.permissions import require_admin


class SettingsService:
    """Service for the per-admin settings row"""

    @staticmethod
    def default_rate():
        return Decimal(str(current_app.config.get('DEFAULT_MILK_RATE_PER_LITER', '0')))

    @staticmethod
    def rate_for(admin_id):
        """The admin's milk rate, or the configured fallback if they never saved one."""
        settings = Settings.query.filter_by(user_id=admin_id).first()
        if settings is None:
            return SettingsService.default_rate()
        return Decimal(settings.milk_rate_per_liter)

    @staticmethod
    def get_or_create(admin_id):
        settings = Settings.query.filter_by(user_id=admin_id).first()
        if settings is None:
            settings = Settings(user_id=admin_id, milk_rate_per_liter=SettingsService.default_rate())
            db.session.add(settings)
            db.session.commit()
        return settings

    @staticmethod
    def update_milk_rate(identity, rate):
        """Upsert the caller's milk rate."""
        require_admin(identity, 'change settings')
        try:
            rate = Decimal(str(rate))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError.for_field('milk_rate_per_liter', 'Rate must be a number.')
        if not rate.is_finite() or rate < 0:
            raise ValidationError.for_field('milk_rate_per_liter', 'Rate cannot be negative.')

        settings = Settings.query.filter_by(user_id=identity.id).first()
        if settings is None:
            settings = Settings(user_id=identity.id)
            db.session.add(settings)
        settings.milk_rate_per_liter = rate.quantize(Decimal('0.01'))
        db.session.commit()
        current_app.logger.info(f'Admin {identity.id} set milk rate to {settings.milk_rate_per_liter}')
        return settings
