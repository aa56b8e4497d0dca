import logging

import pytest
from typer.testing import CliRunner

from twspace_dl.cli import app as cli_app


@pytest.fixture
def cli(monkeypatch, tmp_path):
    monkeypatch.setattr(cli_app, "CONFIG_FILE", tmp_path / "config.ini")
    package_logger = logging.getLogger("twspace_dl")
    root_logger = logging.getLogger()
    levels = (package_logger.level, root_logger.level)
    yield CliRunner()
    package_logger.setLevel(levels[0])
    root_logger.setLevel(levels[1])


@pytest.mark.parametrize(
    "flags, package_level, root_debug",
    [
        ([], logging.INFO, False),
        (["-v"], logging.DEBUG, False),
        (["-vv"], logging.DEBUG, True),
    ],
)
def test_verbosity_flags(cli, flags, package_level, root_debug) -> None:
    logging.getLogger("twspace_dl").setLevel(logging.INFO)
    logging.getLogger().setLevel(logging.INFO)

    result = cli.invoke(cli_app.app, [*flags, "validate"])

    assert result.exit_code == 0, result.output
    assert logging.getLogger("twspace_dl").level == package_level
    assert (logging.getLogger().level == logging.DEBUG) is root_debug


def test_init_writes_config_with_plain_template(cli, tmp_path) -> None:
    result = cli.invoke(cli_app.app, ["init", "--force"])

    assert result.exit_code == 0, result.output
    assert "template = %{title}" in (tmp_path / "config.ini").read_text(encoding="utf-8")


def test_load_hooks_builds_blocklist_and_rejects_both_options() -> None:
    hooks = cli_app.load_hooks("", ["abc"])

    assert hooks.blocked_ids == frozenset({"abc"})
    assert cli_app.load_hooks("", []) is None
    with pytest.raises(cli_app.ConfigurationError):
        cli_app.load_hooks("pkg:Hooks", ["abc"])


def test_main_turns_application_errors_into_exit_code(monkeypatch) -> None:
    from twspace_dl import __main__ as entry_point

    def _fail():
        raise cli_app.ConfigurationError("bad config")

    monkeypatch.setattr(entry_point, "app", _fail)

    with pytest.raises(SystemExit) as excinfo:
        entry_point.main()

    assert excinfo.value.code == 1
