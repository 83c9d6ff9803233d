"""Entity-kind registry: how each Karbon resource is fetched, mapped and stored.

Both the bulk orchestrator and the webhook ingestor dispatch through
``ENTITY_KINDS``; nothing else switches on resource names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import Column, Table

from ..api.client import ODataQuery
from ..models import (
    ClientGroup,
    Contact,
    Invoice,
    KarbonNote,
    KarbonTask,
    Organization,
    TeamMember,
    TimesheetEntry,
    WorkItem,
)
from ..models.base import Base
from . import mappers


class RegistryError(ValueError):
    """The registry itself is inconsistent; raised at startup."""


class UnknownEntityKind(ValueError):
    """A caller asked for an entity kind that is not registered."""

    def __init__(self, names: list[str]):
        self.names = names
        super().__init__(
            f"Unknown entity kind(s): {', '.join(names)}. Valid: {', '.join(SYNC_ORDER)}"
        )


@dataclass(frozen=True)
class ParentLink:
    """Fill ``fk_column`` with the id of the ``parent`` row whose key matches."""

    fk_column: str
    source_key_column: str
    parent: type[Base]
    parent_key_column: str


@dataclass(frozen=True)
class EntityKind:
    name: str
    resource: str  # Karbon resource / webhook event prefix
    model: type[Base]
    key_column: str
    mapper: Callable[[dict], dict]
    list_endpoint: str | None = None
    list_query: ODataQuery = field(default_factory=ODataQuery)
    entity_path: str | None = None  # "/Contacts/{key}"
    entity_expand: tuple[str, ...] = ()
    webhook_key: str | None = None  # key field inside webhook Data
    incremental: bool = True
    parent_links: tuple[ParentLink, ...] = ()
    # Fields copied from webhook Data when the fetched entity lacks them.
    context_keys: tuple[str, ...] = ()
    flatten: Callable[[dict], list[dict]] | None = None
    # Extra columns written alongside a soft delete.
    delete_extra: tuple[tuple[str, str], ...] = ()

    @property
    def table(self) -> Table:
        return self.model.__table__

    @property
    def key_col(self) -> Column:
        return self.table.c[self.key_column]

    @property
    def has_list_endpoint(self) -> bool:
        return self.list_endpoint is not None

    @property
    def fetchable(self) -> bool:
        return self.entity_path is not None

    def map_records(self, items: list[dict]) -> tuple[list[dict], list[str]]:
        """Map source objects; a mapper failure on one item is reported, not raised."""
        records: list[dict] = []
        errors: list[str] = []
        for item in items:
            try:
                if self.flatten is not None:
                    records.extend(self.flatten(item))
                else:
                    records.append(self.mapper(item))
            except (TypeError, ValueError, KeyError, AttributeError) as e:
                errors.append(f"{self.name}: could not map record: {e}")
        return records, errors

    def entity_url(self, key: str) -> str:
        if self.entity_path is None:
            raise RegistryError(f"{self.name} has no single-entity endpoint")
        return self.entity_path.format(key=key)


_KINDS: tuple[EntityKind, ...] = (
    EntityKind(
        name="users",
        resource="User",
        model=TeamMember,
        key_column="karbon_user_key",
        mapper=mappers.map_user,
        list_endpoint="/Users",
        entity_path="/Users/{key}",
        webhook_key="UserKey",
        incremental=False,
    ),
    EntityKind(
        name="contacts",
        resource="Contact",
        model=Contact,
        key_column="karbon_contact_key",
        mapper=mappers.map_contact,
        list_endpoint="/Contacts",
        list_query=ODataQuery(expand=["BusinessCards", "AccountingDetail"], orderby="FullName asc"),
        entity_path="/Contacts/{key}",
        entity_expand=("BusinessCards", "AccountingDetail"),
        webhook_key="ContactKey",
    ),
    EntityKind(
        name="organizations",
        resource="Organization",
        model=Organization,
        key_column="karbon_organization_key",
        mapper=mappers.map_organization,
        list_endpoint="/Organizations",
        list_query=ODataQuery(orderby="OrganizationName asc"),
        entity_path="/Organizations/{key}",
        entity_expand=("BusinessCards",),
        webhook_key="OrganizationKey",
    ),
    EntityKind(
        name="client-groups",
        resource="ClientGroup",
        model=ClientGroup,
        key_column="karbon_client_group_key",
        mapper=mappers.map_client_group,
        list_endpoint="/ClientGroups",
        list_query=ODataQuery(expand=["BusinessCard", "ClientTeam"], orderby="FullName asc"),
        entity_path="/ClientGroups/{key}",
        webhook_key="ClientGroupKey",
    ),
    EntityKind(
        name="work-items",
        resource="WorkItem",
        model=WorkItem,
        key_column="karbon_work_item_key",
        mapper=mappers.map_work_item,
        list_endpoint="/WorkItems",
        list_query=ODataQuery(orderby="Title asc"),
        entity_path="/WorkItems/{key}",
        entity_expand=("UserRoleAssignments", "CustomFields"),
        webhook_key="WorkItemKey",
        parent_links=(
            ParentLink("client_group_id", "client_group_key", ClientGroup, "karbon_client_group_key"),
        ),
        delete_extra=(("status", "Deleted"),),
    ),
    EntityKind(
        name="tasks",
        resource="IntegrationTask",
        model=KarbonTask,
        key_column="karbon_task_key",
        mapper=mappers.map_task,
        list_endpoint="/IntegrationTasks",
        entity_path="/IntegrationTasks/{key}",
        webhook_key="IntegrationTaskKey",
        incremental=False,
        parent_links=(
            ParentLink("work_item_id", "karbon_work_item_key", WorkItem, "karbon_work_item_key"),
            ParentLink("contact_id", "karbon_contact_key", Contact, "karbon_contact_key"),
        ),
    ),
    EntityKind(
        name="timesheets",
        resource="Timesheet",
        model=TimesheetEntry,
        key_column="karbon_timesheet_key",
        mapper=mappers.map_timesheet_entry,
        list_endpoint="/Timesheets",
        list_query=ODataQuery(expand=["TimeEntries"], orderby="StartDate desc"),
        incremental=False,
        parent_links=(
            ParentLink("work_item_id", "karbon_work_item_key", WorkItem, "karbon_work_item_key"),
            ParentLink("team_member_id", "user_key", TeamMember, "karbon_user_key"),
        ),
        flatten=mappers.map_timesheet_entries,
    ),
    EntityKind(
        name="invoices",
        resource="Invoice",
        model=Invoice,
        key_column="karbon_invoice_key",
        mapper=mappers.map_invoice,
        list_endpoint="/Invoices",
        entity_path="/Invoices/{key}",
        webhook_key="InvoiceKey",
        parent_links=(
            ParentLink("work_item_id", "karbon_work_item_key", WorkItem, "karbon_work_item_key"),
        ),
    ),
    # Karbon has no list endpoint for notes; they only arrive through webhooks.
    EntityKind(
        name="notes",
        resource="Note",
        model=KarbonNote,
        key_column="karbon_note_key",
        mapper=mappers.map_note,
        entity_path="/Notes/{key}",
        webhook_key="NoteKey",
        incremental=False,
        parent_links=(
            ParentLink("work_item_id", "karbon_work_item_key", WorkItem, "karbon_work_item_key"),
            ParentLink("contact_id", "karbon_contact_key", Contact, "karbon_contact_key"),
        ),
        context_keys=("WorkItemKey", "ContactKey"),
    ),
)

ENTITY_KINDS: dict[str, EntityKind] = {kind.name: kind for kind in _KINDS}

# Identity -> grouping -> transactional -> sub-transactional.
SYNC_ORDER: tuple[str, ...] = (
    "users",
    "contacts",
    "organizations",
    "client-groups",
    "work-items",
    "tasks",
    "timesheets",
    "invoices",
    "notes",
)

_ALIASES: dict[str, str] = {
    "user": "users",
    "team": "users",
    "contact": "contacts",
    "organization": "organizations",
    "client_groups": "client-groups",
    "clientgroups": "client-groups",
    "work_items": "work-items",
    "workitems": "work-items",
    "task": "tasks",
    "timesheet": "timesheets",
    "invoice": "invoices",
    "note": "notes",
}


def get_kind(name: str) -> EntityKind:
    normalized = name.strip().lower()
    normalized = _ALIASES.get(normalized, normalized)
    try:
        return ENTITY_KINDS[normalized]
    except KeyError:
        raise UnknownEntityKind([name]) from None


def kind_for_resource(resource: str) -> EntityKind | None:
    """Look up a kind by its Karbon resource name (``WorkItem``, ``Contact``...)."""
    for kind in ENTITY_KINDS.values():
        if kind.resource.lower() == resource.strip().lower():
            return kind
    return None


def resolve_scope(names: list[str] | None) -> list[EntityKind]:
    """Requested kinds in dependency order; ``None`` or empty means all."""
    if not names:
        return [ENTITY_KINDS[name] for name in SYNC_ORDER]

    wanted: set[str] = set()
    unknown: list[str] = []
    for raw in names:
        if not raw or not raw.strip():
            continue
        try:
            wanted.add(get_kind(raw).name)
        except UnknownEntityKind:
            unknown.append(raw.strip())
    if unknown:
        raise UnknownEntityKind(unknown)
    return [ENTITY_KINDS[name] for name in SYNC_ORDER if name in wanted]


def validate_registry() -> None:
    """Check the registry is self-consistent. Called once at startup."""
    problems: list[str] = []

    if set(SYNC_ORDER) != set(ENTITY_KINDS):
        problems.append("SYNC_ORDER and ENTITY_KINDS disagree")

    for kind in ENTITY_KINDS.values():
        columns = kind.table.c
        if kind.key_column not in columns:
            problems.append(f"{kind.name}: key column {kind.key_column} missing")
        elif not columns[kind.key_column].unique:
            problems.append(f"{kind.name}: key column {kind.key_column} is not unique")
        if "karbon_modified_at" not in columns:
            problems.append(f"{kind.name}: karbon_modified_at column missing")
        if not callable(kind.mapper):
            problems.append(f"{kind.name}: mapper is not callable")
        if not kind.has_list_endpoint and not kind.fetchable:
            problems.append(f"{kind.name}: neither list nor single-entity endpoint")
        if kind.webhook_key and not kind.fetchable:
            problems.append(f"{kind.name}: webhook key without single-entity endpoint")
        for link in kind.parent_links:
            if link.fk_column not in columns or link.source_key_column not in columns:
                problems.append(f"{kind.name}: parent link {link.fk_column} has unknown columns")
            if link.parent_key_column not in link.parent.__table__.c:
                problems.append(f"{kind.name}: parent key {link.parent_key_column} missing")
        for column, _ in kind.delete_extra:
            if column not in columns:
                problems.append(f"{kind.name}: delete column {column} missing")

    if problems:
        raise RegistryError("; ".join(problems))
