"""Store checkout and admin management services."""

from .admin_service import AdminService
from .store_service import StoreService

__all__ = ["AdminService", "StoreService"]
