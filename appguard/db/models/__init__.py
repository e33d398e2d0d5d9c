from appguard.db.models.core import AppInfo, AppRule, UsageSession

__all__ = ["AppInfo", "AppRule", "UsageSession"]
