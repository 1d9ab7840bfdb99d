from .auth import User, Session, MagicLinkToken, UserSettings
from .returns import RetailerPolicy, ReturnItem

__all__ = [
    'User', 'Session', 'MagicLinkToken', 'UserSettings',
    'RetailerPolicy', 'ReturnItem',
]
