"""Tests for reading credentials from CSV."""

import pytest

from scim_migration.client.exceptions import SourceError
from scim_migration.migration.models import CredentialRecord
from scim_migration.migration.source import parse_credentials, read_credentials


class TestReadCredentials:
    """CSV credential source."""

    def test_reads_rows_in_order(self, tmp_path):
        path = tmp_path / "users.csv"
        path.write_text("ext-1,a@example.com,$2y$10$x,salt\next-2,b@example.com,,\n")

        credentials = read_credentials(path)

        assert credentials == [
            CredentialRecord("ext-1", "a@example.com", "$2y$10$x", "salt"),
            CredentialRecord("ext-2", "b@example.com", "", ""),
        ]
        assert not credentials[1].has_password

    def test_header_row_skipped(self, tmp_path):
        path = tmp_path / "users.csv"
        path.write_text("external_id,email,password,salt\next-1,a@example.com,h,s\n")

        credentials = read_credentials(path, has_header=True)

        assert [c.external_id for c in credentials] == ["ext-1"]

    def test_blank_lines_ignored(self, tmp_path):
        path = tmp_path / "users.csv"
        path.write_text("ext-1,a@example.com,h,s\n\n ,  \next-2,b@example.com,h,s\n")

        assert len(read_credentials(path)) == 2

    def test_quoted_commas_preserved(self, tmp_path):
        path = tmp_path / "users.csv"
        path.write_text('ext-1,a@example.com,"hash,with,commas",s\n')

        assert read_credentials(path)[0].password == "hash,with,commas"

    def test_empty_file_gives_no_credentials(self, tmp_path):
        path = tmp_path / "users.csv"
        path.write_text("")

        assert read_credentials(path) == []

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(SourceError, match="not found"):
            read_credentials(tmp_path / "missing.csv")

    def test_short_row_reports_line_number(self, tmp_path):
        path = tmp_path / "users.csv"
        path.write_text("ext-1,a@example.com,h,s\next-2,b@example.com\n")

        with pytest.raises(SourceError, match=r"users\.csv:2: expected 4 fields, got 2"):
            read_credentials(path)


class TestParseCredentials:
    def test_extra_columns_ignored(self):
        credentials = parse_credentials([["e", "m", "p", "s", "extra"]])

        assert credentials == [CredentialRecord("e", "m", "p", "s")]

    def test_cells_are_stripped(self):
        credentials = parse_credentials([[" e ", " m@example.com", "p ", " s"]])

        assert credentials[0] == CredentialRecord("e", "m@example.com", "p", "s")
