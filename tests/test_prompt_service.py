import pytest

from chatdb.application.services.prompt_service import build_system_prompt, DIALECTS
from chatdb.domain.errors import ConfigurationError


def test_prompt_ends_with_schema_section():
    prompt = build_system_prompt("postgresql", "users(id integer)", "public")
    assert prompt.endswith("SCHEMA:\nusers(id integer)")


def test_prompt_carries_policy_rules():
    prompt = build_system_prompt("mysql", "", "shop")
    assert "ONLY SELECT" in prompt
    assert "LIMIT" in prompt
    assert '"chartType"' in prompt
    assert "SAME LANGUAGE" in prompt
    assert "GROUP BY" in prompt
    assert 'The active schema is "shop"' in prompt


@pytest.mark.parametrize("dialect,name,current_date", [
    ("postgresql", "PostgreSQL", "CURRENT_DATE"),
    ("mysql", "MySQL", "CURDATE()"),
    ("sqlite", "SQLite", "date('now')"),
])
def test_prompt_contains_dialect_specifics(dialect, name, current_date):
    prompt = build_system_prompt(dialect, "", "main")
    assert f"{name} specifics:" in prompt
    assert f"Current date: {current_date}" in prompt
    for note in DIALECTS[dialect].notes:
        assert note in prompt


def test_table_schema_caveat_only_for_postgres():
    assert "table_schema" in build_system_prompt("postgresql", "", "public")
    assert "table_schema" not in build_system_prompt("mysql", "", "shop")
    assert "table_schema" not in build_system_prompt("sqlite", "", "main")


def test_unknown_dialect_rejected():
    with pytest.raises(ConfigurationError):
        build_system_prompt("oracle", "", "x")
