import pytest

from crm_engine.exceptions import (
    DuplicateTargetField,
    MissingRequiredFields,
    ParseError,
    UnknownTargetField,
    UploadError,
)
from crm_engine.config import get_settings
from crm_engine.schemas.common import EntityKind
from crm_engine.schemas.csv_import import ColumnMapping
from crm_engine.services.column_mapper import (
    detect_target_field,
    infer_mapping,
    mapping_as_dict,
    parse,
    validate_mapping,
)


CONTACTS_CSV = (
    "First Name,Last Name,Email,Phone,Company,Job Title,Lead Score,Tags,Favourite Color\n"
    "Jane,Doe,jane@x.com,555-0100,Acme,CTO,80,vip;beta,blue\n"
    "John,Roe,john@x.com,,Acme,CEO,12,,green\n"
)


def test_parse_splits_header_and_rows():
    table = parse("a,b,c\n1,2,3\n4,5,6\n")

    assert table.headers == ("a", "b", "c")
    assert table.rows == (("1", "2", "3"), ("4", "5", "6"))
    assert table.line_numbers == (2, 3)
    assert len(table) == 2


def test_parse_drops_mismatched_and_empty_rows_but_keeps_line_numbers():
    text = "a,b,c\n1,2,3\nonly,two\n,,\n\n7,8,9\n"

    table = parse(text)

    assert table.rows == (("1", "2", "3"), ("7", "8", "9"))
    assert table.line_numbers == (2, 6)


def test_parse_handles_quoted_cells_and_trims():
    text = 'name,notes\n"Acme, Inc.","said ""hi"""\n  Globex  ,\'plain\'\n'

    table = parse(text)

    assert table.rows[0] == ("Acme, Inc.", 'said "hi"')
    assert table.rows[1] == ("Globex", "plain")


def test_parse_accepts_bytes_with_bom():
    table = parse("\ufeffFirst Name,Last Name\nJane,Doe\n".encode("utf-8"))

    assert table.headers == ("First Name", "Last Name")


def test_parse_rejects_header_only():
    with pytest.raises(ParseError):
        parse("First Name,Last Name\n")


def test_parse_rejects_empty_text():
    with pytest.raises(ParseError):
        parse("")


def test_parse_rejects_when_every_row_is_malformed():
    with pytest.raises(ParseError):
        parse("a,b,c\n1,2\n,,\n")


def test_parse_rejects_non_utf8_bytes():
    with pytest.raises(UploadError):
        parse(b"name\n\xff\xfe\xfa\n")


def test_parse_enforces_upload_limit_for_text_and_bytes(monkeypatch):
    monkeypatch.setattr(get_settings(), "max_upload_bytes", 64)
    text = "First Name,Last Name\n" + "Jane,Doe\n" * 100

    with pytest.raises(UploadError):
        parse(text)
    with pytest.raises(UploadError):
        parse(text.encode("utf-8"))
    assert len(parse("First Name,Last Name\nJane,Doe\n")) == 1


def test_infer_mapping_for_contacts():
    preview = infer_mapping(parse(CONTACTS_CSV), EntityKind.CONTACTS)
    by_header = {m.source_header: m for m in preview.mapping}

    assert by_header["First Name"].target_field == "first_name"
    assert by_header["First Name"].required is True
    assert by_header["Last Name"].target_field == "last_name"
    assert by_header["Email"].target_field == "email"
    assert by_header["Email"].required is False
    assert by_header["Phone"].target_field == "phone"
    assert by_header["Company"].target_field == "company_name"
    assert by_header["Job Title"].target_field == "title"
    assert by_header["Lead Score"].target_field == "lead_score"
    assert by_header["Tags"].target_field == "tags"
    assert by_header["Favourite Color"].target_field == ""
    assert by_header["Email"].sample == "jane@x.com"
    assert preview.duplicate_count == 0


def test_infer_mapping_is_case_insensitive_and_first_rule_wins():
    # "lead source" must not be taken for "lead score"
    assert detect_target_field("LEAD SOURCE", EntityKind.CONTACTS) == "lead_source"
    assert detect_target_field("first_name", EntityKind.CONTACTS) == "first_name"
    assert detect_target_field("Company Name", EntityKind.CONTACTS) == "company_name"


def test_infer_mapping_for_organizations_and_deals():
    assert detect_target_field("Company Name", EntityKind.ORGANIZATIONS) == "name"
    assert detect_target_field("Domain", EntityKind.ORGANIZATIONS) == "domain"
    assert detect_target_field("Website", EntityKind.ORGANIZATIONS) == "website"
    assert detect_target_field("LinkedIn URL", EntityKind.ORGANIZATIONS) == "linkedin_url"
    assert detect_target_field("Number of Employees", EntityKind.ORGANIZATIONS) == "employee_count"
    assert detect_target_field("Deal Name", EntityKind.DEALS) == "title"
    assert detect_target_field("Amount", EntityKind.DEALS) == "value"
    assert detect_target_field("Expected Close Date", EntityKind.DEALS) == "expected_close_date"


def test_preview_is_bounded_but_total_rows_is_full():
    lines = ["First Name,Last Name"] + [f"P{i},Q{i}" for i in range(12)]
    preview = infer_mapping(parse("\n".join(lines)), "contacts")

    assert len(preview.rows) == 5
    assert preview.rows[0] == ["P0", "Q0"]
    assert preview.total_rows == 12


def test_entity_kind_aliases_are_accepted():
    preview = infer_mapping(parse("Name,Domain\nAcme,acme.com\n"), "companies")

    assert preview.entity_kind == EntityKind.ORGANIZATIONS
    assert [m.target_field for m in preview.mapping] == ["name", "domain"]


def _mapping(**targets):
    return [ColumnMapping(source_header=h, target_field=t) for h, t in targets.items()]


def test_validate_accepts_complete_mapping():
    validate_mapping(_mapping(First="first_name", Last="last_name", Mail="email", Extra=""), "contacts")


def test_validate_reports_missing_required_fields():
    with pytest.raises(MissingRequiredFields) as exc:
        validate_mapping(_mapping(First="first_name", Mail="email"), "contacts")

    assert exc.value.fields == ["last_name"]


def test_validate_rejects_two_columns_for_one_field():
    mapping = _mapping(First="first_name", Last="last_name", Email="email", Work="email")

    with pytest.raises(DuplicateTargetField) as exc:
        validate_mapping(mapping, "contacts")

    assert exc.value.field == "email"
    assert exc.value.headers == ["Email", "Work"]


def test_inferred_mapping_may_hold_duplicates_until_validated():
    preview = infer_mapping(parse("First Name,Last Name,Email,Work Email\nA,B,a@x,b@x\n"), "contacts")

    assert [m.target_field for m in preview.mapping].count("email") == 2
    with pytest.raises(DuplicateTargetField):
        validate_mapping(preview.mapping, "contacts")


def test_validate_rejects_fields_that_cannot_be_imported():
    with pytest.raises(UnknownTargetField):
        validate_mapping(_mapping(Name="name", Id="id"), "organizations")


def test_validate_requires_title_for_deals():
    with pytest.raises(MissingRequiredFields) as exc:
        validate_mapping(_mapping(Amount="value"), "deals")

    assert exc.value.fields == ["title"]


def test_mapping_as_dict_keeps_unmapped_columns():
    mapping = _mapping(First="first_name", Color="")

    assert mapping_as_dict(mapping) == {"First": "first_name", "Color": ""}
