"""Admin accounts module."""

from transfer_intake.modules.admins.models import AdminUser
from transfer_intake.modules.admins.repository import AdminUserRepository

__all__ = ["AdminUser", "AdminUserRepository"]
