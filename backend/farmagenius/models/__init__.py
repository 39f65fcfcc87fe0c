"""
FarmaGenius Backend — ORM Models Package
=========================================

Importing this package registers every table on Base.metadata
(used by Alembic autogenerate and by the test suite's create_all).
"""

from farmagenius.models.audit_log import AuditLog
from farmagenius.models.mapping import Mapping
from farmagenius.models.report import Report, ReportItem
from farmagenius.models.user import User
from farmagenius.models.user_settings import UserSettings

__all__ = ["AuditLog", "Mapping", "Report", "ReportItem", "User", "UserSettings"]
