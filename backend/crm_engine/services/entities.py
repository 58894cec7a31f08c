"""
Per-kind description of the CRM records the engine imports, exports and mutates.

Everything kind-specific lives here: header rules for column detection,
required fields, the duplicate key, value types for coercion, default export
fields and the allowed status values.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Pattern, Tuple, Type

from ..database import Base
from ..models import Contact, Organization, Deal
from ..models.contact import ContactStatus
from ..models.organization import OrganizationStatus
from ..models.deal import DealStatus
from ..schemas.common import EntityKind

# Pseudo-field resolved to a company_id through an organization name lookup
COMPANY_NAME_FIELD = "company_name"


@dataclass(frozen=True)
class EntitySpec:
    kind: EntityKind
    model: Type[Base]
    required_fields: Tuple[str, ...]
    duplicate_key: str
    importable_fields: Tuple[str, ...]
    # Ordered (pattern, field) pairs, first match wins
    header_rules: Tuple[Tuple[Pattern, str], ...]
    default_export_fields: Tuple[str, ...]
    relation_fields: Tuple[str, ...] = ()
    relations: Tuple[str, ...] = ()
    search_fields: Tuple[str, ...] = ()
    int_fields: FrozenSet[str] = frozenset()
    float_fields: FrozenSet[str] = frozenset()
    date_fields: FrozenSet[str] = frozenset()
    tag_fields: FrozenSet[str] = frozenset({"tags"})
    statuses: Tuple[str, ...] = field(default_factory=tuple)


def _rules(*pairs: Tuple[str, str]) -> Tuple[Tuple[Pattern, str], ...]:
    return tuple((re.compile(pattern, re.IGNORECASE), target) for pattern, target in pairs)


CONTACT_SPEC = EntitySpec(
    kind=EntityKind.CONTACTS,
    model=Contact,
    required_fields=("first_name", "last_name"),
    duplicate_key="email",
    importable_fields=(
        "first_name", "last_name", "email", "phone", "title", COMPANY_NAME_FIELD,
        "lead_score", "status", "lead_source", "linkedin_url", "twitter_url",
        "notes", "tags",
    ),
    header_rules=_rules(
        (r"first.*name", "first_name"),
        (r"last.*name", "last_name"),
        (r"email", "email"),
        (r"phone", "phone"),
        (r"company", COMPANY_NAME_FIELD),
        (r"title", "title"),
        (r"lead.*score", "lead_score"),
        (r"status", "status"),
        (r"source", "lead_source"),
        (r"linkedin", "linkedin_url"),
        (r"twitter", "twitter_url"),
        (r"notes", "notes"),
        (r"tags", "tags"),
    ),
    default_export_fields=(
        "id", "first_name", "last_name", "email", "phone", "title", "company.name",
        "status", "lead_score", "lead_source", "created_at",
    ),
    relation_fields=("company.name",),
    relations=("company",),
    search_fields=("first_name", "last_name", "email"),
    int_fields=frozenset({"lead_score"}),
    statuses=tuple(s.value for s in ContactStatus),
)

ORGANIZATION_SPEC = EntitySpec(
    kind=EntityKind.ORGANIZATIONS,
    model=Organization,
    required_fields=("name",),
    duplicate_key="domain",
    importable_fields=(
        "name", "domain", "industry", "size", "phone", "email", "website",
        "annual_revenue", "employee_count", "founded_year", "linkedin_url",
        "twitter_url", "status", "description", "tags",
    ),
    header_rules=_rules(
        (r"domain", "domain"),
        (r"linkedin", "linkedin_url"),
        (r"twitter", "twitter_url"),
        (r"website|url", "website"),
        (r"industry|sector", "industry"),
        (r"employee.*(count|number)|headcount|employees", "employee_count"),
        (r"size", "size"),
        (r"revenue", "annual_revenue"),
        (r"founded", "founded_year"),
        (r"phone", "phone"),
        (r"email", "email"),
        (r"status", "status"),
        (r"description|notes", "description"),
        (r"tags", "tags"),
        (r"name|company|organi[sz]ation", "name"),
    ),
    default_export_fields=(
        "id", "name", "domain", "industry", "size", "phone", "email", "website",
        "status", "created_at",
    ),
    search_fields=("name", "domain", "email"),
    int_fields=frozenset({"employee_count", "founded_year"}),
    float_fields=frozenset({"annual_revenue"}),
    statuses=tuple(s.value for s in OrganizationStatus),
)

DEAL_SPEC = EntitySpec(
    kind=EntityKind.DEALS,
    model=Deal,
    required_fields=("title",),
    duplicate_key="title",
    importable_fields=(
        "title", "description", "value", "currency", "probability", "status",
        "lost_reason", "expected_close_date", "actual_close_date", COMPANY_NAME_FIELD,
        "tags",
    ),
    header_rules=_rules(
        (r"title|deal.*name", "title"),
        (r"description", "description"),
        (r"value|amount", "value"),
        (r"currency", "currency"),
        (r"probability", "probability"),
        (r"lost.*reason", "lost_reason"),
        (r"status", "status"),
        (r"expected.*close", "expected_close_date"),
        (r"actual.*close", "actual_close_date"),
        (r"company", COMPANY_NAME_FIELD),
        (r"tags", "tags"),
    ),
    default_export_fields=(
        "id", "title", "value", "currency", "probability", "status",
        "expected_close_date", "created_at",
    ),
    relation_fields=("stage.name", "contact.name", "company.name"),
    relations=("stage", "contact", "company"),
    search_fields=("title", "description"),
    int_fields=frozenset({"probability"}),
    float_fields=frozenset({"value"}),
    date_fields=frozenset({"expected_close_date", "actual_close_date"}),
    statuses=tuple(s.value for s in DealStatus),
)

ENTITY_SPECS: Dict[EntityKind, EntitySpec] = {
    EntityKind.CONTACTS: CONTACT_SPEC,
    EntityKind.ORGANIZATIONS: ORGANIZATION_SPEC,
    EntityKind.DEALS: DEAL_SPEC,
}


def get_entity_spec(kind) -> EntitySpec:
    """Look up the spec for a kind given as enum or string alias."""
    return ENTITY_SPECS[EntityKind(kind)]
