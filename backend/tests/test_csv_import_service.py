import pytest

from crm_engine.exceptions import (
    AuthenticationRequired,
    MissingRequiredFields,
    UploadError,
)
from crm_engine.models import Contact, Deal, ImportLog, Organization
from crm_engine.schemas.common import DuplicateStrategy, EntityKind
from crm_engine.schemas.csv_import import ColumnMapping
from crm_engine.services.column_mapper import infer_mapping, parse
from crm_engine.services.csv_import_service import (
    ImportExecutor,
    build_fields,
    coerce_date,
    coerce_float,
    coerce_int,
    import_csv,
    split_tags,
)
from crm_engine.services.entities import CONTACT_SPEC


def _run(store, audit_log, user, text, kind="contacts", strategy=DuplicateStrategy.UPDATE, **kwargs):
    table = parse(text)
    mapping = infer_mapping(table, kind).mapping
    return ImportExecutor(store, audit_log).run(table, mapping, kind, strategy, user, **kwargs)


# ============================================================================
# Coercion
# ============================================================================

def test_coerce_int_accepts_floats_and_defaults_to_zero():
    assert coerce_int("42") == 42
    assert coerce_int("12.0") == 12
    assert coerce_int("high") == 0


def test_coerce_float_strips_thousands_separator():
    assert coerce_float("1500.5") == 1500.5
    assert coerce_float("1,250.50") == 1250.5
    assert coerce_float("n/a") == 0.0
    assert coerce_float("inf") == 0.0


def test_coerce_date_takes_iso_prefix():
    assert coerce_date("expected_close_date", "2026-03-31T10:00:00").isoformat() == "2026-03-31"
    with pytest.raises(ValueError, match="expected_close_date"):
        coerce_date("expected_close_date", "31/03/2026")


def test_split_tags_drops_blanks():
    assert split_tags(" vip ; ;beta;") == ["vip", "beta"]


def test_build_fields_skips_empty_cells():
    columns = [(0, "first_name"), (1, "last_name"), (2, "email"), (3, "lead_score")]

    fields = build_fields(("Jane", "Doe", "", "55"), columns, CONTACT_SPEC)

    assert fields == {"first_name": "Jane", "last_name": "Doe", "lead_score": 55}


# ============================================================================
# Execution
# ============================================================================

def test_row_missing_required_value_is_reported_and_run_continues(store, audit_log, admin, db_session):
    text = "First Name,Last Name,Email\nJane,Doe,jane@x.com\n,Smith,bad"

    log = _run(store, audit_log, admin, text, strategy=DuplicateStrategy.CREATE_NEW)

    assert log.row_count == 2
    assert log.success_count == 1
    assert log.error_count == 1
    assert log.skipped_count == 0
    assert len(log.errors) == 1
    assert log.errors[0]["row"] == 2
    assert log.errors[0]["line"] == 3
    assert "first_name" in log.errors[0]["message"]

    jane = db_session.query(Contact).filter(Contact.email == "jane@x.com").one()
    assert (jane.first_name, jane.last_name) == ("Jane", "Doe")
    assert db_session.query(Contact).count() == 1


def test_created_records_are_stamped_with_acting_user(store, audit_log, member, db_session):
    _run(store, audit_log, member, "First Name,Last Name\nAda,Byron\n")

    ada = db_session.query(Contact).one()
    assert ada.created_by == member.id
    assert ada.owner_id == member.id


def test_create_new_adds_one_record_per_valid_row(store, audit_log, admin, contacts, db_session):
    text = "First Name,Last Name,Email\nJane,Doe,jane@acme.com\nNew,Person,new@x.com\n"

    log = _run(store, audit_log, admin, text, strategy=DuplicateStrategy.CREATE_NEW)

    assert log.success_count == 2
    assert db_session.query(Contact).count() == len(contacts) + 2
    assert db_session.query(Contact).filter(Contact.email == "jane@acme.com").count() == 2


def test_skip_leaves_existing_record_untouched(store, audit_log, admin, contacts, db_session):
    jane = contacts[0]
    text = "First Name,Last Name,Email,Job Title\nJanet,Doe,jane@acme.com,VP Sales\n"

    log = _run(store, audit_log, admin, text, strategy=DuplicateStrategy.SKIP)

    assert log.success_count == 0
    assert log.skipped_count == 1
    assert log.error_count == 0
    db_session.refresh(jane)
    assert jane.first_name == "Jane"
    assert jane.title is None
    assert db_session.query(Contact).count() == len(contacts)


def test_update_changes_existing_record_without_creating(store, audit_log, admin, contacts, db_session):
    jane = contacts[0]
    text = "First Name,Last Name,Email,Job Title,Phone\nJanet,Doe,jane@acme.com,VP Sales,\n"

    log = _run(store, audit_log, admin, text, strategy=DuplicateStrategy.UPDATE)

    assert log.success_count == 1
    assert db_session.query(Contact).count() == len(contacts)
    db_session.refresh(jane)
    assert jane.first_name == "Janet"
    assert jane.title == "VP Sales"
    # Empty cells do not blank existing values
    assert jane.tags == ["vip"]
    assert jane.created_by is None


def test_tags_and_numbers_are_coerced(store, audit_log, admin, db_session):
    text = "First Name,Last Name,Lead Score,Tags\nAda,Byron,87,vip; beta\nBob,Ray,lots,\n"

    log = _run(store, audit_log, admin, text)

    assert log.error_count == 0
    ada = db_session.query(Contact).filter(Contact.first_name == "Ada").one()
    bob = db_session.query(Contact).filter(Contact.first_name == "Bob").one()
    assert ada.lead_score == 87
    assert ada.tags == ["vip", "beta"]
    assert bob.lead_score == 0
    assert bob.tags == []


def test_invalid_date_is_a_row_error(store, audit_log, admin, db_session):
    text = (
        "Deal Name,Amount,Expected Close Date\n"
        "Big one,\"25,000\",2026-09-30\n"
        "Broken,100,next week\n"
        "Small one,900,\n"
    )

    log = _run(store, audit_log, admin, text, kind="deals")

    assert log.success_count == 2
    assert log.error_count == 1
    assert log.errors[0]["row"] == 2
    assert "expected_close_date" in log.errors[0]["message"]
    big = db_session.query(Deal).filter(Deal.title == "Big one").one()
    assert big.value == 25000.0
    assert big.expected_close_date.isoformat() == "2026-09-30"


def test_company_name_links_existing_organization(store, audit_log, admin, acme, db_session):
    text = "First Name,Last Name,Company\nAda,Byron,Acme Corp\nBob,Ray,Unknown Ltd\n"

    log = _run(store, audit_log, admin, text)

    assert log.success_count == 2
    ada = db_session.query(Contact).filter(Contact.first_name == "Ada").one()
    bob = db_session.query(Contact).filter(Contact.first_name == "Bob").one()
    assert ada.company_id == acme.id
    assert bob.company_id is None


def test_organization_update_by_domain(store, audit_log, admin, acme, db_session):
    text = "Company Name,Domain,Industry,Employees\nAcme Corporation,acme.com,Robotics,250\n"

    log = _run(store, audit_log, admin, text, kind="organizations")

    assert log.success_count == 1
    assert db_session.query(Organization).count() == 1
    db_session.refresh(acme)
    assert acme.name == "Acme Corporation"
    assert acme.industry == "Robotics"
    assert acme.employee_count == 250


def test_log_records_mapping_and_file_name(store, audit_log, admin, db_session):
    log = _run(
        store, audit_log, admin,
        "First Name,Last Name,Favourite Color\nAda,Byron,blue\n",
        file_name="people.csv",
    )

    stored = db_session.query(ImportLog).one()
    assert stored.id == log.id
    assert stored.user_id == admin.id
    assert stored.entity_kind == "contacts"
    assert stored.file_name == "people.csv"
    assert stored.status == "completed"
    assert stored.mapping == {
        "First Name": "first_name",
        "Last Name": "last_name",
        "Favourite Color": "",
    }


def test_unauthenticated_import_is_rejected_without_log(store, audit_log, db_session):
    with pytest.raises(AuthenticationRequired):
        _run(store, audit_log, None, "First Name,Last Name\nAda,Byron\n")

    assert db_session.query(ImportLog).count() == 0
    assert db_session.query(Contact).count() == 0


def test_incomplete_mapping_is_rejected_without_log(store, audit_log, admin, db_session):
    table = parse("First Name,Email\nAda,ada@x.com\n")
    mapping = infer_mapping(table, "contacts").mapping

    with pytest.raises(MissingRequiredFields) as exc:
        ImportExecutor(store, audit_log).run(table, mapping, "contacts", "update", admin)

    assert exc.value.fields == ["last_name"]
    assert db_session.query(ImportLog).count() == 0
    assert db_session.query(Contact).count() == 0


def test_mapping_referencing_missing_column_is_rejected(store, audit_log, admin):
    table = parse("First Name,Last Name\nAda,Byron\n")
    mapping = [
        ColumnMapping(source_header="First Name", target_field="first_name"),
        ColumnMapping(source_header="Surname", target_field="last_name"),
    ]

    with pytest.raises(UploadError):
        ImportExecutor(store, audit_log).run(table, mapping, EntityKind.CONTACTS, "update", admin)


def test_cancelled_run_keeps_processed_rows_and_logs_them(store, audit_log, admin, db_session):
    text = "First Name,Last Name\nA,One\nB,Two\nC,Three\n"
    calls = []

    def should_cancel():
        calls.append(1)
        return len(calls) > 2

    log = _run(store, audit_log, admin, text, should_cancel=should_cancel)

    assert log.status == "cancelled"
    assert log.row_count == 3
    assert log.success_count == 2
    assert db_session.query(Contact).count() == 2


def test_import_csv_parses_and_runs(store, audit_log, admin, db_session):
    mapping = [
        ColumnMapping(source_header="first", target_field="first_name"),
        ColumnMapping(source_header="last", target_field="last_name"),
    ]

    log = import_csv(
        store, audit_log, b"first,last\nAda,Byron\n", "raw.csv",
        mapping, "contact", "skip", admin,
    )

    assert log.success_count == 1
    assert log.file_name == "raw.csv"
    assert db_session.query(Contact).one().last_name == "Byron"
