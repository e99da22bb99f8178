"""Tests for scripts/create_admin.py."""

from unittest.mock import patch
from uuid import UUID

import pytest

from auth.credentials import verify_password
from scripts.create_admin import main, parse_args, run

ADMIN_ROW = {
    "id": UUID("00000000-0000-0000-0000-000000000001"),
    "email": "owner@example.com",
    "name": "Site Owner",
    "password_hash": "$2b$10$existinghashexistinghashexistinghashexistinghashexi",
}


def echo_row(query, params):
    """Stand-in for INSERT/UPDATE ... RETURNING."""
    if query.lstrip().startswith("INSERT"):
        return [{"id": params[0], "email": params[1], "name": params[2], "password_hash": params[3]}]
    return [{**ADMIN_ROW, "email": params[0], "name": params[1]}]


class TestParseArgs:

    def test_defaults(self):
        args = parse_args(["--email", "owner@example.com"])

        assert args.name is None
        assert args.password is None
        assert args.reset_password is False

    def test_email_required(self):
        with pytest.raises(SystemExit):
            parse_args([])


class TestRun:

    def test_creates_admin(self, storage, pg_client, capsys):
        pg_client.execute_returning.side_effect = echo_row

        code = run(parse_args(["--email", "Owner@Example.com", "--password", "s3cret-pass"]), storage)

        assert code == 0
        insert = pg_client.execute_returning.call_args_list[0]
        assert insert.args[1][1] == "owner@example.com"
        assert insert.args[1][2] == "Admin User"
        assert verify_password("s3cret-pass", insert.args[1][3])
        assert "Admin created: owner@example.com" in capsys.readouterr().out

    def test_logs_creation(self, storage, pg_client):
        pg_client.execute_returning.side_effect = echo_row

        run(parse_args(["--email", "owner@example.com", "--password", "pw"]), storage)

        query, params = pg_client.execute.call_args.args
        assert "INSERT INTO security_events" in query
        assert params[0] == "admin_created"

    def test_existing_admin_untouched(self, storage, pg_client, capsys):
        pg_client.execute_single.return_value = ADMIN_ROW

        code = run(parse_args(["--email", "owner@example.com", "--password", "new"]), storage)

        assert code == 0
        pg_client.execute_returning.assert_not_called()
        assert "--reset-password" in capsys.readouterr().out

    def test_reset_password_keeps_name(self, storage, pg_client):
        pg_client.execute_single.return_value = ADMIN_ROW
        pg_client.execute_returning.side_effect = echo_row

        code = run(
            parse_args(["--email", "owner@example.com", "--password", "new-pass", "--reset-password"]),
            storage,
        )

        assert code == 0
        params = pg_client.execute_returning.call_args.args[1]
        assert params[1] == "Site Owner"
        assert verify_password("new-pass", params[2])
        assert params[4] == "00000000-0000-0000-0000-000000000001"
        assert pg_client.execute.call_args.args[1][0] == "password_reset"

    def test_prompts_for_password(self, storage, pg_client):
        pg_client.execute_returning.side_effect = echo_row

        with patch("scripts.create_admin.getpass.getpass", return_value="typed-pass") as prompt:
            run(parse_args(["--email", "owner@example.com"]), storage)

        prompt.assert_called_once()
        assert verify_password("typed-pass", pg_client.execute_returning.call_args_list[0].args[1][3])

    def test_empty_password_rejected(self, storage, pg_client):
        with patch("scripts.create_admin.getpass.getpass", return_value=""):
            code = run(parse_args(["--email", "owner@example.com"]), storage)

        assert code == 1
        pg_client.execute_returning.assert_not_called()


class TestMain:

    def test_database_unreachable(self, capsys):
        with patch("scripts.create_admin.load_settings") as load_settings, patch("scripts.create_admin.setup_logging"):
            load_settings.return_value.database_url = None
            load_settings.return_value.log_level = "INFO"

            code = main(["--email", "owner@example.com", "--password", "pw"])

        assert code == 1
        assert "Could not connect" in capsys.readouterr().err
