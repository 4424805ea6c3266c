"""Repositories for the credential store."""

from portfolio_api.repositories.admin_record import AdminRecordRepository
from portfolio_api.repositories.credential import CredentialRepository

__all__ = [
    "AdminRecordRepository",
    "CredentialRepository",
]
