"""CLI parsing and exit status."""
import pytest

import main
from orchestrator import RunResult


def test_parser_defaults_leave_config_to_environment():
    args = main.build_parser().parse_args([])

    assert args.once is None
    assert args.skip_perception is None
    assert args.cycles is None


def test_parser_flags():
    args = main.build_parser().parse_args(["--once", "--skip-perception", "--cycles", "2", "--base-url", "http://arm:9000"])

    assert args.once is True
    assert args.skip_perception is True
    assert args.cycles == 2
    assert args.base_url == "http://arm:9000"


def test_parser_loop_flag():
    assert main.build_parser().parse_args(["--loop"]).once is False


@pytest.mark.parametrize("value", ["0", "-3", "many"])
def test_parser_rejects_non_positive_cycles(value, capsys):
    with pytest.raises(SystemExit) as exc:
        main.build_parser().parse_args(["--cycles", value])

    assert exc.value.code == 2
    assert "--cycles" in capsys.readouterr().err


def test_positive_int():
    assert main.positive_int("1") == 1
    assert main.positive_int(" 12 ") == 12


class _FakeOrchestrator:
    result = RunResult(cycles=1, fatal=False)
    seen = {}

    def __init__(self, config, endpoints, completions):
        _FakeOrchestrator.seen["config"] = config

    def run(self, max_cycles=None):
        _FakeOrchestrator.seen["max_cycles"] = max_cycles
        return _FakeOrchestrator.result


def test_exit_status_reflects_fatal_halt(monkeypatch):
    monkeypatch.setattr(main, "Orchestrator", _FakeOrchestrator)

    _FakeOrchestrator.result = RunResult(cycles=1, fatal=False)
    assert main.main(["--once"]) == 0
    assert _FakeOrchestrator.seen["config"].once is True

    _FakeOrchestrator.result = RunResult(cycles=2, fatal=True, reason="Failed to detect blocks: ABORTED")
    assert main.main(["--cycles", "5"]) == 1
    assert _FakeOrchestrator.seen["max_cycles"] == 5
