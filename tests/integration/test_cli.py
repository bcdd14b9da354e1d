"""
Integration tests for the CLI.

Tests cover:
- init / users / login / whoami / logout
- rules, check, projects and documents against seeded data
- --config, --at and --json handling
- Error exits (unknown user, missing database)
"""

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest
from typer.testing import CliRunner

from warden import __version__
from warden.cli import _clock_at, app
from warden.schema import ResourceType
from warden.store import Predicate, WardenDB

runner = CliRunner()

TUESDAY = "2026-10-20"
SATURDAY = "2026-10-24"


@pytest.fixture
def db_path(temp_dir: Path) -> Path:
    """A database initialized and seeded through the CLI."""
    path = temp_dir / "cli.db"
    result = runner.invoke(app, ["init", "--seed", "--db", str(path)])
    assert result.exit_code == 0, result.output
    return path


def record_id(db_path: Path, resource_type: ResourceType, column: str, value: str) -> str:
    with WardenDB(db_path) as db:
        (record,) = db.find(resource_type, Predicate.equals(column, value))
        return record.id


def invoke_json(*args: str):
    result = runner.invoke(app, [*args, "--json"])
    return result, json.loads(result.stdout)


class TestBasics:
    """Tests for version, init and users."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_init_without_seed(self, temp_dir: Path) -> None:
        path = temp_dir / "empty.db"
        result = runner.invoke(app, ["init", "--db", str(path)])
        assert result.exit_code == 0
        assert path.exists()

    def test_seed_summary(self, temp_dir: Path) -> None:
        result = runner.invoke(app, ["init", "--seed", "--db", str(temp_dir / "s.db")])
        assert result.exit_code == 0
        assert "8 users" in result.stdout
        assert "17 documents" in result.stdout

    def test_users_json(self, db_path: Path) -> None:
        result, users = invoke_json("users", "--db", str(db_path))
        assert result.exit_code == 0
        assert len(users) == 8
        assert {u["role"] for u in users} == {"admin", "author", "editor", "viewer"}

    def test_missing_database(self, temp_dir: Path) -> None:
        result = runner.invoke(
            app, ["projects", "--as", "admin.eng@example.com", "--db", str(temp_dir / "nope.db")]
        )
        assert result.exit_code == 1

    def test_unknown_user(self, db_path: Path) -> None:
        result = runner.invoke(app, ["rules", "--as", "nobody@example.com", "--db", str(db_path)])
        assert result.exit_code == 1


class TestSessionsCommands:
    """Tests for login, whoami and logout."""

    def test_login_whoami_logout(self, db_path: Path) -> None:
        login = runner.invoke(app, ["login", "author.marketing@example.com", "--db", str(db_path)])
        assert login.exit_code == 0
        token = login.stdout.strip()

        result, principal = invoke_json("whoami", token, "--db", str(db_path))
        assert result.exit_code == 0
        assert principal["role"] == "author"
        assert principal["department"] == "Marketing"

        logout = runner.invoke(app, ["logout", token, "--db", str(db_path)])
        assert logout.exit_code == 0

        after = runner.invoke(app, ["whoami", token, "--db", str(db_path)])
        assert after.exit_code == 1

    def test_login_unknown_user(self, db_path: Path) -> None:
        result = runner.invoke(app, ["login", "nobody@example.com", "--db", str(db_path)])
        assert result.exit_code == 1


class TestRulesCommand:
    """Tests for `warden rules`."""

    def test_weekday_rules(self, db_path: Path) -> None:
        result, data = invoke_json(
            "rules", "--as", "author.eng@example.com", "--at", TUESDAY, "--db", str(db_path)
        )
        assert result.exit_code == 0
        assert data["is_weekend"] is False
        assert len(data["rules"]) == 15
        actions = {(r["resource_type"], r["action"]) for r in data["rules"]}
        assert ("document", "create") in actions

    def test_weekend_rules(self, db_path: Path) -> None:
        result, data = invoke_json(
            "rules", "--as", "author.eng@example.com", "--at", SATURDAY, "--db", str(db_path)
        )
        assert result.exit_code == 0
        assert data["is_weekend"] is True
        assert all(r["action"] == "read" for r in data["rules"])

    def test_table_output(self, db_path: Path) -> None:
        result = runner.invoke(app, ["rules", "--as", "admin.eng@example.com", "--db", str(db_path)])
        assert result.exit_code == 0
        assert "8 rules" in result.stdout


class TestCheckCommand:
    """Tests for `warden check`."""

    def test_create_allowed_on_weekday(self, db_path: Path) -> None:
        result = runner.invoke(app, [
            "check", "document", "create",
            "--as", "author.eng@example.com", "--at", TUESDAY, "--db", str(db_path),
        ])
        assert result.exit_code == 0
        assert "ALLOW" in result.stdout

    def test_create_denied_on_weekend(self, db_path: Path) -> None:
        result = runner.invoke(app, [
            "check", "document", "create",
            "--as", "author.eng@example.com", "--at", SATURDAY, "--db", str(db_path),
        ])
        assert result.exit_code == 1
        assert "DENY" in result.stdout

    def test_draft_denied_for_viewer(self, db_path: Path) -> None:
        draft_id = record_id(db_path, ResourceType.DOCUMENT, "title", "Authentication Flow (Draft)")
        result, decision = invoke_json(
            "check", "document", "read", "--id", draft_id,
            "--as", "viewer.eng@example.com", "--db", str(db_path),
        )
        assert result.exit_code == 1
        assert decision["allowed"] is False
        assert decision["rule_matched"] == "no_matching_condition"

    def test_field_check(self, db_path: Path) -> None:
        guide_id = record_id(db_path, ResourceType.DOCUMENT, "title", "Getting Started Guide")
        result, decision = invoke_json(
            "check", "document", "read", "--id", guide_id, "--field", "creator_id",
            "--as", "viewer.eng@example.com", "--db", str(db_path),
        )
        assert result.exit_code == 1
        assert decision["rule_matched"] == "field_not_permitted"

    def test_missing_record(self, db_path: Path) -> None:
        result = runner.invoke(app, [
            "check", "project", "read", "--id", "missing",
            "--as", "admin.eng@example.com", "--db", str(db_path),
        ])
        assert result.exit_code == 1


class TestListingCommands:
    """Tests for `warden projects` and `warden documents`."""

    def test_projects(self, db_path: Path) -> None:
        result, projects = invoke_json("projects", "--as", "viewer.marketing@example.com", "--db", str(db_path))
        assert result.exit_code == 0
        assert [p["name"] for p in projects] == ["Brand Guidelines", "Campaign Plans", "Company Wiki"]

    def test_documents_redacted(self, db_path: Path) -> None:
        api_id = record_id(db_path, ResourceType.PROJECT, "name", "API Documentation")
        result, documents = invoke_json(
            "documents", api_id, "--as", "viewer.eng@example.com", "--db", str(db_path)
        )
        assert result.exit_code == 0
        assert len(documents) == 3
        assert all("creator_id" not in d for d in documents)

    def test_documents_table(self, db_path: Path) -> None:
        api_id = record_id(db_path, ResourceType.PROJECT, "name", "API Documentation")
        result = runner.invoke(
            app, ["documents", api_id, "--as", "viewer.marketing@example.com", "--db", str(db_path)]
        )
        assert result.exit_code == 0
        assert "No documents visible" in result.stdout


class TestConfigOption:
    """Tests for --config."""

    def test_database_path_from_config(self, db_path: Path, temp_dir: Path) -> None:
        config = temp_dir / "warden.yaml"
        config.write_text(f"database_path: {db_path}\n")
        result = runner.invoke(
            app, ["--config", str(config), "projects", "--as", "admin.eng@example.com", "--json"]
        )
        assert result.exit_code == 0
        assert len(json.loads(result.stdout)) == 5

    def test_weekend_days_from_config(self, db_path: Path, temp_dir: Path) -> None:
        config = temp_dir / "tuesday-off.yaml"
        config.write_text("weekend_days: [1]\n")
        result = runner.invoke(app, [
            "--config", str(config),
            "check", "document", "create",
            "--as", "author.eng@example.com", "--at", TUESDAY, "--db", str(db_path),
        ])
        assert result.exit_code == 1

    def test_invalid_config(self, temp_dir: Path) -> None:
        config = temp_dir / "bad.yaml"
        config.write_text("weekend_days: [9]\n")
        result = runner.invoke(app, ["--config", str(config), "users"])
        assert result.exit_code == 1


class TestClockAt:
    """Tests for the --at clock helper."""

    def test_no_instant_uses_real_clock(self) -> None:
        assert _clock_at(None) is None

    def test_naive_instant_is_utc(self) -> None:
        clock = _clock_at(datetime(2026, 10, 24, 9, 30))
        assert clock() == datetime(2026, 10, 24, 9, 30, tzinfo=UTC)
        assert clock().weekday() == 5
