"""Karbon mirror models - re-exports all models and Base.metadata."""

from .base import Base, UUIDMixin, TimestampMixin, KarbonSyncMixin
from .team_member import TeamMember
from .contact import Contact
from .organization import Organization
from .client_group import ClientGroup
from .work_item import WorkItem
from .task import KarbonTask
from .timesheet import TimesheetEntry
from .invoice import Invoice
from .note import KarbonNote
from .sync_run import SyncRun
from .webhook_event import WebhookEvent
from .followup import FollowupJob
from .subscription import WebhookSubscription

__all__ = [
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "KarbonSyncMixin",
    "TeamMember",
    "Contact",
    "Organization",
    "ClientGroup",
    "WorkItem",
    "KarbonTask",
    "TimesheetEntry",
    "Invoice",
    "KarbonNote",
    "SyncRun",
    "WebhookEvent",
    "FollowupJob",
    "WebhookSubscription",
]
