"""Tests for the CLI entry point."""

import pytest

from flatctl.cli import main
from flatctl.journal import append_entry


class TestMain:
    """Test exit statuses and the error boundary."""

    def test_success(self, settings, capsys):
        append_entry(settings.history_log, {"OPERATION": "install", "INSTALLATION": "user"})

        assert main(["history", "--columns=change"], settings) == 0
        assert capsys.readouterr().out.splitlines() == ["Change", "install"]

    def test_usage_error(self, settings, capsys):
        assert main(["history", "--bogus"], settings) == 1

        err = capsys.readouterr().err
        assert err.startswith("error: unrecognized arguments: --bogus")
        assert "See 'flatctl history --help'" in err

    def test_no_command(self, settings, capsys):
        assert main([], settings) == 1
        assert "No command specified" in capsys.readouterr().err

    def test_unknown_command(self, settings, capsys):
        assert main(["lsit"], settings) == 1
        assert "Did you mean 'list'?" in capsys.readouterr().err

    def test_errors_are_not_colored_on_pipes(self, settings, capsys):
        main(["lsit"], settings)

        assert "\033[" not in capsys.readouterr().err

    def test_version_exits_zero(self, settings, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"], settings)

        assert exc_info.value.code == 0
        assert capsys.readouterr().out == "flatctl 0.3.0\n"

    def test_completion(self, settings, capsys):
        assert main(["complete", "hi", "flatctl", "flatctl hi"], settings) == 0
        assert capsys.readouterr().out == "history \n"

    def test_completion_without_line(self, settings, capsys):
        assert main(["complete", "", "flatctl"], settings) == 0
        assert "list " in capsys.readouterr().out.splitlines()

    def test_complete_with_too_few_tokens_is_a_command(self, settings, capsys):
        assert main(["complete", "x"], settings) == 1
        assert "'complete' is not a flatctl command" in capsys.readouterr().err

    def test_invalid_environment(self, monkeypatch, capsys):
        monkeypatch.setenv("FLATCTL_SYSTEM_DIR", "relative/path")

        assert main(["history"]) == 1
        assert "Invalid path: relative/path" in capsys.readouterr().err

    def test_relative_time_out_of_range(self, settings, capsys):
        assert main(["history", "--since=1000000 days"], settings) == 1
        assert "Failed to parse '1000000 days'" in capsys.readouterr().err

    def test_out_of_range_log_timestamp(self, settings, capsys):
        append_entry(
            settings.history_log,
            {"OPERATION": "install", "INSTALLATION": "user", "_SOURCE_REALTIME_TIMESTAMP": "9" * 23},
        )

        assert main(["history", "--columns=time,change"], settings) == 0
        assert capsys.readouterr().out.splitlines()[-1].split() == ["install"]
