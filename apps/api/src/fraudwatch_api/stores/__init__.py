"""Report and user-profile storage."""

from fraudwatch_api.stores.base import ReportStore, StorageProvider, UserProfileStore

__all__ = ["ReportStore", "StorageProvider", "UserProfileStore"]
