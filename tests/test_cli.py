"""
Unit tests for the CLI module (account_hub/cli.py).

Tests cover:
- Command parsing and dispatch
- init-db command
- recompute-ranks command
- cleanup-tokens command
- run command startup handling
"""

import argparse
from datetime import timedelta
from unittest.mock import patch

import pytest

from account_hub import cli
from account_hub.config import config
from account_hub.db import tokens_repo
from account_hub.db.connection import connection_scope
from account_hub.db.errors import DatabaseError
from account_hub.db.types import utc_now
from account_hub.services.ranking import RankingEngine, SkillUpdate

# ============================================================================
# PARSER TESTS
# ============================================================================


@pytest.mark.unit
def test_parser_recompute_ranks_options():
    args = cli.build_parser().parse_args(["recompute-ranks", "--persistence-id", "3"])

    assert args.persistence_id == 3
    assert args.func is cli.cmd_recompute_ranks


@pytest.mark.unit
def test_parser_run_options():
    args = cli.build_parser().parse_args(["run", "--host", "127.0.0.1", "--port", "4000"])

    assert (args.host, args.port) == ("127.0.0.1", 4000)


@pytest.mark.unit
def test_main_no_command(capsys):
    """Test main with no command shows help."""
    with patch("sys.argv", ["account-hub"]):
        assert cli.main() == 0
    assert "init-db" in capsys.readouterr().out


# ============================================================================
# INIT-DB COMMAND TESTS
# ============================================================================


@pytest.mark.unit
def test_cmd_init_db_success():
    with patch("account_hub.db.schema.init_database") as mock_init:
        result = cli.cmd_init_db(argparse.Namespace())

    assert result == 0
    mock_init.assert_called_once()


@pytest.mark.unit
def test_cmd_init_db_error(capsys):
    with patch("account_hub.db.schema.init_database", side_effect=Exception("DB error")):
        result = cli.cmd_init_db(argparse.Namespace())

    assert result == 1
    assert "DB error" in capsys.readouterr().err


@pytest.mark.db
def test_main_init_db_creates_schema(temp_db_path):
    with patch("sys.argv", ["account-hub", "init-db"]):
        assert cli.main() == 0

    assert temp_db_path.exists()
    with connection_scope() as conn:
        skills = conn.execute("SELECT COUNT(*) AS n FROM skills").fetchone()
    assert skills["n"] > 0


# ============================================================================
# RECOMPUTE-RANKS COMMAND TESTS
# ============================================================================


@pytest.mark.db
def test_cmd_recompute_ranks_all_groups(make_account, make_world, capsys):
    make_world(1, persistence_id=1)
    make_world(2, persistence_id=2)
    account_id = make_account("alice")
    RankingEngine().apply_skill_updates(account_id, 2, [SkillUpdate("mining", 5, 400)])

    result = cli.cmd_recompute_ranks(argparse.Namespace(persistence_id=None))

    assert result == 0
    out = capsys.readouterr().out
    assert "Persistence group 1: 0 aggregates" in out
    assert "Persistence group 2: 1 aggregates" in out


@pytest.mark.db
def test_cmd_recompute_ranks_without_groups(test_db, capsys):
    assert cli.cmd_recompute_ranks(argparse.Namespace(persistence_id=None)) == 0
    assert "No persistence groups registered." in capsys.readouterr().out


@pytest.mark.unit
def test_cmd_recompute_ranks_database_error(capsys):
    with patch(
        "account_hub.db.worlds_repo.list_persistence_ids",
        side_effect=DatabaseError("boom"),
    ):
        result = cli.cmd_recompute_ranks(argparse.Namespace(persistence_id=None))

    assert result == 1
    assert "Error recomputing ranks" in capsys.readouterr().err


# ============================================================================
# CLEANUP-TOKENS COMMAND TESTS
# ============================================================================


@pytest.mark.db
def test_cmd_cleanup_tokens_drains_batches(make_account, monkeypatch, capsys):
    monkeypatch.setattr(config.login_tokens, "cleanup_batch_size", 2)
    account_id = make_account("alice")
    past = utc_now() - timedelta(minutes=5)
    for index in range(5):
        tokens_repo.create_token(
            f"{index:x}" * 64,
            account_id=account_id,
            world_id=1,
            client_version=1,
            expires_at=past,
            now=past - timedelta(seconds=60),
        )

    assert cli.cmd_cleanup_tokens(argparse.Namespace()) == 0
    assert "Deleted 5 login tokens." in capsys.readouterr().out


# ============================================================================
# RUN COMMAND TESTS
# ============================================================================


@pytest.mark.unit
def test_cmd_run_reports_bind_errors(temp_db_path, capsys):
    with patch("account_hub.db.schema.init_database"):
        with patch(
            "account_hub.api.server.start_server", side_effect=OSError("address in use")
        ):
            result = cli.cmd_run(argparse.Namespace(host=None, port=3002))

    assert result == 1
    assert "address in use" in capsys.readouterr().err
