"""Tests for history module."""

from datetime import datetime, timezone

import pytest

from conftest import APP_REF, COMMIT_A, write_installation_config
from flatctl import dispatcher
from flatctl.columns import resolve_columns
from flatctl.errors import NotFoundError, StorageError, TimeParseError, UsageError
from flatctl.history import HISTORY_COLUMNS, lookup_user_name, project_row, query_history
from flatctl.journal import JournalEntry, append_entry
from flatctl.time_utils import TimeRange, datetime_to_usec


def _usec(hour: int, minute: int = 0) -> str:
    return str(datetime_to_usec(datetime(2026, 2, 9, hour, minute, tzinfo=timezone.utc)))


def _record(installation="system", hour=10, **fields):
    record = {
        "OPERATION": "install",
        "INSTALLATION": installation,
        "REF": APP_REF,
        "REMOTE": "flathub",
        "COMMIT": COMMIT_A,
        "RESULT": "0",
        "_SOURCE_REALTIME_TIMESTAMP": _usec(hour),
    }
    record.update(fields)
    return record


@pytest.fixture
def journal(settings):
    """History log with entries for three installations."""
    path = settings.history_log
    append_entry(path, _record("system", 9, OPERATION="install"))
    append_entry(path, _record("user", 10, OPERATION="update"))
    append_entry(path, _record("extra", 11, OPERATION="uninstall"))
    append_entry(path, _record("system", 12, OPERATION="update", RESULT="1"))
    return path


def _rows(path, history_ids=None, time_range=TimeRange(), columns=("change", "installation")):
    specs = resolve_columns(HISTORY_COLUMNS, list(columns))
    return list(query_history(path, history_ids, time_range, specs))


class TestProjectRow:
    """Test mapping of log fields to column cells."""

    def _entry(self, **fields):
        return JournalEntry(fields, 1)

    def _project(self, entry, *ids):
        return project_row(entry, resolve_columns(HISTORY_COLUMNS, list(ids)))

    def test_ref_parts(self):
        entry = self._entry(REF=APP_REF)

        assert self._project(entry, "ref", "application", "arch", "branch") == [
            APP_REF,
            "org.example.App",
            "x86_64",
            "stable",
        ]

    def test_malformed_ref_renders_empty(self):
        entry = self._entry(REF="app/broken")

        assert self._project(entry, "ref", "application", "branch") == ["app/broken", "", ""]

    def test_commit_truncated(self):
        assert self._project(self._entry(COMMIT=COMMIT_A), "commit") == ["a" * 12]

    def test_result_zero_is_success(self):
        assert self._project(self._entry(RESULT="0"), "result") == ["✓"]

    def test_result_non_zero_is_empty(self):
        assert self._project(self._entry(RESULT="1"), "result") == [""]
        assert self._project(self._entry(), "result") == [""]

    def test_time_of_day(self, utc_local):
        assert self._project(self._entry(_SOURCE_REALTIME_TIMESTAMP=_usec(10, 30)), "time") == ["10:30:00"]

    def test_missing_or_bad_time_is_empty(self, utc_local):
        assert self._project(self._entry(), "time") == [""]
        assert self._project(self._entry(_SOURCE_REALTIME_TIMESTAMP="soon"), "time") == [""]

    def test_out_of_range_time_is_empty(self, utc_local):
        entry = self._entry(_SOURCE_REALTIME_TIMESTAMP="9" * 23, OPERATION="install")

        assert self._project(entry, "time", "change") == ["", "install"]

    def test_missing_fields_are_empty(self):
        assert self._project(self._entry(), "change", "remote", "tool", "version") == ["", "", "", ""]

    def test_tool_and_version(self):
        entry = self._entry(TOOL="flatctl", TOOL_VERSION="0.3.0")

        assert self._project(entry, "tool", "version") == ["flatctl", "0.3.0"]

    def test_user_name_lookup(self, mocker):
        mocker.patch("flatctl.history.pwd.getpwuid", return_value=mocker.Mock(pw_name="alice"))

        assert self._project(self._entry(_UID="1000"), "user") == ["alice"]

    def test_user_lookup_failure_keeps_id(self, mocker):
        mocker.patch("flatctl.history.pwd.getpwuid", side_effect=KeyError(4242))

        assert lookup_user_name("4242") == "4242"

    def test_non_numeric_uid_kept(self):
        assert lookup_user_name("nobody?") == "nobody?"


class TestQueryHistory:
    """Test filtering of log entries."""

    def test_newest_first(self, journal):
        assert _rows(journal) == [
            ["update", "system"],
            ["uninstall", "extra"],
            ["update", "user"],
            ["install", "system"],
        ]

    def test_installation_filter(self, journal):
        assert _rows(journal, {"system"}) == [["update", "system"], ["install", "system"]]

    def test_since_inclusive_until_exclusive(self, journal):
        time_range = TimeRange(
            since=datetime(2026, 2, 9, 10, 0, tzinfo=timezone.utc),
            until=datetime(2026, 2, 9, 12, 0, tzinfo=timezone.utc),
        )

        assert _rows(journal, time_range=time_range) == [["uninstall", "extra"], ["update", "user"]]

    def test_entry_without_timestamp(self, settings):
        # append_entry would fill the timestamp in, so write the line directly.
        settings.history_log.parent.mkdir(parents=True)
        settings.history_log.write_text(
            '{"_COMM": "flatctl", "MESSAGE_ID": "c7b39b1e006b464599465e105b361485", '
            '"OPERATION": "install", "INSTALLATION": "system"}\n',
            encoding="utf-8",
        )
        bounded = TimeRange(since=datetime(2000, 1, 1, tzinfo=timezone.utc))

        assert _rows(settings.history_log) == [["install", "system"]]
        assert _rows(settings.history_log, time_range=bounded) == []

    def test_other_producers_ignored(self, settings):
        append_entry(settings.history_log, _record(_COMM="something-else"))
        append_entry(settings.history_log, _record(MESSAGE_ID="0" * 32))
        append_entry(settings.history_log, _record(OPERATION="kept"))

        assert _rows(settings.history_log) == [["kept", "system"]]

    def test_corrupt_log_aborts(self, journal):
        with open(journal, "a", encoding="utf-8") as f:
            f.write("{broken\n")

        with pytest.raises(StorageError):
            _rows(journal)


class TestHistoryCommand:
    """Test the history command end to end through the dispatcher."""

    def _run(self, ctx, *args):
        result = dispatcher.run(ctx, ["history", *args])
        return result, ctx.stdout.getvalue().splitlines()

    def test_default_table(self, ctx, journal, utc_local):
        result, lines = self._run(ctx)

        assert result == 0
        assert lines[0].split() == [
            "Time",
            "Change",
            "Installation",
            "Application",
            "Branch",
            "Remote",
            "Commit",
            "Success",
        ]
        # The "extra" installation is not targeted by default.
        assert len(lines) == 4
        assert lines[1].split() == ["12:00:00", "update", "system", "org.example.App", "stable", "flathub", "a" * 12]
        assert lines[-1].split()[-1] == "✓"

    def test_user_only(self, ctx, journal):
        _, lines = self._run(ctx, "--user", "--columns=change,installation")

        assert lines[1:] == ["update  user"]

    def test_named_installation(self, ctx, settings, journal, tmp_path):
        write_installation_config(settings, "extra.conf", {"extra": tmp_path / "extra"})

        _, lines = self._run(ctx, "--installation=extra", "--columns=change")

        assert lines == ["Change", "uninstall"]

    def test_since_and_until(self, ctx, journal, utc_local):
        _, lines = self._run(
            ctx,
            "--since=2026-02-09 09:30:00",
            "--until=2026-02-09 12:00:00",
            "--columns=time,change",
        )

        assert lines[1:] == ["10:00:00  update"]

    def test_bad_time(self, ctx, journal):
        with pytest.raises(TimeParseError, match="Failed to parse 'whenever'"):
            self._run(ctx, "--since=whenever")

    def test_unknown_column_checked_before_reading_log(self, ctx, journal, mocker):
        open_journal = mocker.patch("flatctl.history.open_journal")

        with pytest.raises(UsageError, match="Unknown column: bogus"):
            self._run(ctx, "--columns=time,bogus")

        open_journal.assert_not_called()

    def test_show_columns(self, ctx, journal):
        _, lines = self._run(ctx, "--show-columns")

        assert lines[0] == "Available columns:"

    def test_columns_help_keyword(self, ctx, journal):
        _, lines = self._run(ctx, "--columns=help")

        assert lines[0] == "Available columns:"

    def test_too_many_arguments(self, ctx, journal):
        with pytest.raises(UsageError, match="Too many arguments") as exc_info:
            self._run(ctx, "extra")

        assert "See 'flatctl history --help'" in str(exc_info.value)

    def test_unknown_installation(self, ctx, journal):
        with pytest.raises(NotFoundError, match="Could not find installation nope"):
            self._run(ctx, "--installation=nope")

    def test_empty_log_prints_titles_only(self, ctx):
        _, lines = self._run(ctx, "--columns=change")

        assert lines == ["Change"]


    def test_detail_log_names_fields_read(self, ctx, journal):
        self._run(ctx, "-vv", "--columns=change,application,branch")

        assert "F: Reading fields: OPERATION, REF\n" in ctx.stderr.getvalue()
