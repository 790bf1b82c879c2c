import pytest

from traffic_replay.config import ReplayConfig
from traffic_replay.main import build_parser, config_from_args, main
from traffic_replay.system_info import format_system_state, get_system_state

T0 = 1761128950441


def test_parser_defaults():
    config = config_from_args(build_parser().parse_args(["requests.csv"]))

    assert config == ReplayConfig()
    assert config.timeout_ms == 60000
    assert config.accelerator == 1


def test_parser_maps_every_option():
    args = build_parser().parse_args([
        "requests.csv", "-t", "1500", "-a", "10", "-H", "localhost:3000",
        "--no-cache", "--skip-header", "--no-verify",
        "--reset-connections", "100", "--limit", "50", "--spin-ns", "100000", "-v",
    ])

    config = config_from_args(args)

    assert args.csv_path == "requests.csv"
    assert config == ReplayConfig(
        timeout_ms=1500, accelerator=10, host="localhost:3000", no_cache=True,
        skip_header=True, no_verify=True, reset_connections=100, limit=50,
        spin_ns=100000, verbose=True,
    )


def test_missing_csv_path_is_a_usage_error(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main([])

    assert exc_info.value.code == 2


@pytest.mark.parametrize("option,message", [
    (["--accelerator", "0"], "accelerator must be greater than 0"),
    (["--accelerator", "-2"], "accelerator must be greater than 0"),
    (["--timeout", "0"], "timeout must be a positive number"),
    (["--reset-connections", "0"], "reset-connections must be a positive integer"),
    (["--limit", "-1"], "limit must be a positive integer"),
])
def test_invalid_options_exit_with_error(write_csv, capsys, option, message):
    path = write_csv(f"{T0},http://example.com/\n")

    assert main([path, *option]) == 1
    assert message in capsys.readouterr().err


def test_missing_file_is_fatal(tmp_path, capsys):
    assert main([str(tmp_path / "nope.csv")]) == 1
    assert "Fatal error" in capsys.readouterr().err


def test_malformed_csv_is_fatal(write_csv, capsys):
    path = write_csv("abc,http://x\n")

    assert main([path]) == 1
    err = capsys.readouterr().err
    assert "Fatal error" in err
    assert "invalid time at line 1" in err


def test_empty_csv_completes(write_csv, capsys):
    path = write_csv("")

    assert main([path]) == 0
    assert "No requests found in CSV file" in capsys.readouterr().out


def test_completed_run_prints_report(write_csv, fake_execute, capsys):
    path = write_csv(f"{T0},http://example.com/a\n{T0 + 10},http://example.com/b\n{T0 + 20},http://example.com/c\n")

    assert main([path, "--limit", "2"]) == 0
    out = capsys.readouterr().out
    assert "Total requests:  2" in out
    assert "P99:" in out
    assert len(fake_execute.calls) == 2


def test_system_state_snapshot():
    state = get_system_state(sample_seconds=0)

    assert state["cpu"]["usage_percent"] >= 0
    assert state["memory"]["total_gb"] > 0
    text = format_system_state(state)
    assert "CPU:" in text
    assert "Memory:" in text
