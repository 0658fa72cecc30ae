from pathlib import Path

from s6_dash.config import Settings


def test_defaults_when_env_empty():
    s = Settings.from_env({})
    assert s.poll_interval == 1.0
    assert s.debounce == 0.5
    assert s.log_file is None
    assert s.log_level == "INFO"


def test_env_overrides():
    s = Settings.from_env(
        {
            "S6DASH_SVSTAT_BIN": "/opt/s6/bin/s6-svstat",
            "S6DASH_POLL_INTERVAL": "2.5",
            "S6DASH_DEBOUNCE": "0.25",
            "S6DASH_LOG_FILE": "/tmp/s6-dash.log",
            "S6DASH_LOG_LEVEL": "debug",
        }
    )
    assert s.svstat_bin == "/opt/s6/bin/s6-svstat"
    assert s.poll_interval == 2.5
    assert s.debounce == 0.25
    assert s.log_file == Path("/tmp/s6-dash.log")
    assert s.log_level == "DEBUG"


def test_bad_numbers_fall_back_to_defaults():
    s = Settings.from_env({"S6DASH_POLL_INTERVAL": "soon", "S6DASH_DEBOUNCE": "-1"})
    assert s.poll_interval == 1.0
    assert s.debounce == 0.5
