from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

def init_db(app):
    """Initialize database with app"""
    db.init_app(app)

from .show import Show, ShowItem, Interviewee
from .email_settings import EmailSettings, EmailRecipient
from .show_email_log import ShowEmailLog
from .dispatch_lock import DispatchLock

__all__ = [
    'db',
    'init_db',
    'Show',
    'ShowItem',
    'Interviewee',
    'EmailSettings',
    'EmailRecipient',
    'ShowEmailLog',
    'DispatchLock',
]
