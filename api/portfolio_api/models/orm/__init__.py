"""SQLAlchemy ORM Models for the portfolio admin API.

Pure database models using SQLAlchemy 2.0 declarative style.
"""

from portfolio_api.models.orm.admin_record import ADMIN_RECORD_ID, AdminRecord
from portfolio_api.models.orm.base import Base
from portfolio_api.models.orm.credential import PasskeyCredential

__all__ = [
    # Base
    "Base",
    # Admin
    "ADMIN_RECORD_ID",
    "AdminRecord",
    # Passkeys
    "PasskeyCredential",
]
