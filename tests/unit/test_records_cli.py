"""
Unit tests for the records CLI tool.

Each command runs against a SQLite store in a temporary directory.
"""

import asyncio
import json
import tempfile
from pathlib import Path

import pytest

from ledger.population_data.state.sqlite import SqliteStateStore
from ledger.population_data.tools.records_cli import (
    EXIT_BACKEND,
    EXIT_CORRUPT,
    EXIT_OK,
    EXIT_USER_ERROR,
    build_parser,
    run,
)

FIELDS = [
    "--name", "Ivan",
    "--last-name", "Petrov",
    "--city", "Kazan",
    "--residential-address", "Main street 5",
    "--phone-number", "+79990000000",
    "--family-status", "Married",
]


class TestRecordsCLI:
    """Tests for run()."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def cli(self, data_dir, capsys):
        """Run a command and return (exit_code, stdout_json, stderr_json)."""

        def invoke(*args):
            code = run(["--data-dir", data_dir, "--backend", "sqlite", *args])
            captured = capsys.readouterr()
            out = json.loads(captured.out) if captured.out.strip() else None
            err_lines = captured.err.strip().splitlines()
            err = json.loads(err_lines[-1]) if err_lines else None
            return code, out, err

        return invoke

    def test_init_is_idempotent(self, cli):
        """init seeds twice the first time, zero afterwards."""
        assert cli("init") == (EXIT_OK, {"seeded": 2}, None)
        assert cli("init") == (EXIT_OK, {"seeded": 0}, None)

        code, record, _ = cli("read", "1")
        assert code == EXIT_OK
        assert record["Name"] == "Ildar"

    def test_create_read_update_history(self, cli):
        """Full lifecycle through the CLI."""
        code, created, _ = cli("create", "--passport-number", "3", *FIELDS)
        assert code == EXIT_OK
        assert created["PassportNumber"] == "3"
        assert created["LastName"] == "Petrov"

        updated_fields = [*FIELDS]
        updated_fields[updated_fields.index("Kazan")] = "Samara"
        code, updated, _ = cli("update", "3", *updated_fields)
        assert code == EXIT_OK
        assert updated["City"] == "Samara"

        code, history, _ = cli("history", "3")
        assert code == EXIT_OK
        assert [v["City"] for v in history] == ["Kazan", "Samara"]

        code, versions, _ = cli("history", "3", "--with-metadata")
        assert [v["sequence"] for v in versions] == [0, 1]
        assert versions[1]["record"]["City"] == "Samara"

    def test_duplicate_create(self, cli):
        """A second create exits 1 with ALREADY_EXISTS on stderr."""
        cli("create", "--passport-number", "3", *FIELDS)

        code, out, err = cli("create", "--passport-number", "3", *FIELDS)

        assert code == EXIT_USER_ERROR
        assert out is None
        assert err["error_code"] == "ALREADY_EXISTS"
        assert err["details"]["passport_number"] == "3"

    @pytest.mark.parametrize("command", [["read", "77"], ["history", "77"], ["update", "77", *FIELDS]])
    def test_not_found(self, cli, command):
        """Operations on an absent key exit 1 with NOT_FOUND."""
        code, _, err = cli(*command)

        assert code == EXIT_USER_ERROR
        assert err["error_code"] == "NOT_FOUND"

    def test_corrupt_record(self, cli, data_dir):
        """Corrupt stored data exits 2 with CORRUPT_RECORD."""
        store = SqliteStateStore(data_dir)
        asyncio.run(store.connect())
        store.inject_raw_version("bad", b"\x00garbage")

        code, _, err = cli("read", "bad")

        assert code == EXIT_CORRUPT
        assert err["error_code"] == "CORRUPT_RECORD"

    def test_create_requires_all_fields(self):
        """Missing field arguments are a usage error."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["create", "--passport-number", "3", "--name", "Ivan"])

    def test_unreadable_database(self, cli, data_dir):
        """A database file that is not SQLite exits 3 with BACKEND_UNAVAILABLE."""
        (Path(data_dir) / "ledger.db").write_bytes(b"not a database" * 100)

        code, out, err = cli("read", "1")

        assert code == EXIT_BACKEND
        assert out is None
        assert err["error_code"] == "BACKEND_UNAVAILABLE"

    def test_surrogate_argument_rejected(self, cli):
        """An argument that cannot be encoded as UTF-8 exits 1 with INVALID_RECORD."""
        fields = [*FIELDS]
        fields[fields.index("Ivan")] = "Iv\udcffan"

        code, out, err = cli("create", "--passport-number", "3", *fields)

        assert code == EXIT_USER_ERROR
        assert out is None
        assert err["error_code"] == "INVALID_RECORD"
        assert err["details"]["field"] == "name"

    def test_memory_backend_rejected(self, data_dir, monkeypatch, capsys):
        """The memory backend would lose every write, so it is a config error."""
        monkeypatch.setenv("STATE_BACKEND", "memory")

        code = run(["--data-dir", data_dir, "read", "1"])

        err = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert code == EXIT_USER_ERROR
        assert err["error_code"] == "CONFIG_ERROR"

    def test_memory_backend_flag_not_offered(self):
        """--backend only accepts sqlite."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--backend", "memory", "read", "1"])
