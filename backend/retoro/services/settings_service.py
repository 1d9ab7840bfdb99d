# Overview: Service-layer operations for user settings; encapsulates business logic and database work.

from ..extensions import db
from ..models import UserSettings
from ..time_utils import utcnow


DEFAULT_CURRENCY = "USD"


def create_default_settings(user_id: str) -> UserSettings:
    """
    Add the default settings row for a new account.

    Does not commit; callers create the user and its settings in one transaction.
    """
    settings = UserSettings(
        user_id=user_id,
        preferred_currency=DEFAULT_CURRENCY,
        notifications_enabled=True,
        email_notifications_enabled=True,
        push_notifications_enabled=True,
    )
    db.session.add(settings)
    return settings


def get_settings(user_id: str) -> UserSettings | None:
    return db.session.query(UserSettings).filter_by(user_id=user_id).first()


def get_preferred_currency(user_id: str) -> str:
    settings = get_settings(user_id)
    return settings.preferred_currency if settings else DEFAULT_CURRENCY


def update_preferred_currency(user_id: str, currency: str) -> UserSettings:
    """Set the preferred currency, creating the settings row if it is missing."""
    settings = get_settings(user_id)
    if settings is None:
        settings = create_default_settings(user_id)

    settings.preferred_currency = currency
    settings.updated_at = utcnow()
    db.session.commit()
    return settings
