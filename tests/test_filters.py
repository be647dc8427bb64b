"""Filter builder: parameter combination rules and identifier validation."""

import pytest

from fleet_registry_api.app.core.errors import InvalidReference
from fleet_registry_api.app.core.filters import (
    And,
    Contains,
    Eq,
    FilterBuilder,
    FilterParams,
    In,
    MatchAll,
    Or,
    field_expression,
)

ACCOUNT = "65a1b2c3d4e5f60718293a4b"


@pytest.fixture
def builder():
    return FilterBuilder(
        ("imei", "serial_no"),
        reference_fields=("account_id", "driver_id"),
        flag_field="is_active",
        substring_filters={"sim_operator": ("sim_no1_operator", "sim_no2_operator")},
    )


def test_no_parameters_match_everything(builder):
    assert builder.build(FilterParams()) == MatchAll()
    assert MatchAll().to_sql() == ("1 = 1", [])


def test_reference_and_flag_are_anded(builder):
    predicate = builder.build(FilterParams(references={"account_id": ACCOUNT}, flag=False))
    assert predicate == And((Eq("account_id", ACCOUNT), Eq("is_active", False)))
    sql, params = predicate.to_sql()
    assert " AND " in sql
    assert params == [ACCOUNT, 0]


def test_reference_ids_are_normalized(builder):
    predicate = builder.build(FilterParams(references={"account_id": f"  {ACCOUNT.upper()} "}))
    assert predicate == Eq("account_id", ACCOUNT)


def test_malformed_reference_is_rejected(builder):
    with pytest.raises(InvalidReference):
        builder.build(FilterParams(references={"driver_id": "not-an-id"}))
    with pytest.raises(InvalidReference):
        builder.validate(FilterParams(references={"account_id": "12345"}))


def test_empty_reference_values_are_ignored(builder):
    assert builder.build(FilterParams(references={"account_id": None, "driver_id": ""})) == MatchAll()


def test_search_and_substring_clauses_stay_separate(builder):
    predicate = builder.build(FilterParams(search="abc", substrings={"sim_operator": "tel"}))
    assert predicate == And(
        (
            Or((Contains("sim_no1_operator", "tel"), Contains("sim_no2_operator", "tel"))),
            Or((Contains("imei", "abc"), Contains("serial_no", "abc"))),
        )
    )


def test_reference_hits_extend_search_clause(builder):
    predicate = builder.build(
        FilterParams(search="ravi"),
        reference_hits={"driver_id": [ACCOUNT], "account_id": []},
    )
    assert predicate == Or(
        (Contains("imei", "ravi"), Contains("serial_no", "ravi"), In("driver_id", (ACCOUNT,)))
    )


def test_blank_search_is_ignored(builder):
    assert builder.build(FilterParams(search="   ")) == MatchAll()


def test_contains_escapes_regex_characters():
    sql, params = Contains("imei", "a.b*").to_sql()
    assert "REGEXP" in sql
    assert params == [r"a\.b\*"]


def test_empty_in_matches_nothing():
    assert In("id", ()).to_sql() == ("0 = 1", [])


def test_in_binds_values_as_one_json_array():
    sql, params = In("is_active", (True, "a")).to_sql()
    assert "json_each(?)" in sql
    assert params == ['[1, "a"]']


def test_exact_fields():
    builder = FilterBuilder(("brand_name",), exact_fields=("status",))
    assert builder.build(FilterParams(exact={"status": "active"})) == Eq("status", "active")
    with pytest.raises(ValueError):
        builder.build(FilterParams(exact={"icon": "x"}))


def test_field_expression_rejects_unsafe_names():
    assert field_expression("created_at") == "created_at"
    assert field_expression("imei") == "json_extract(data, '$.imei')"
    with pytest.raises(ValueError):
        field_expression("imei') OR 1=1 --")
