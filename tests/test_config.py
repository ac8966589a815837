import pytest

from codejudge.core.config import PollingConfig, Settings


def test_fixed_delay_worst_case_within_bound():
    cfg = PollingConfig()  # 5s grace, 10s interval, 30 attempts

    assert cfg.delay_before_attempt(1) == 5
    assert cfg.delay_before_attempt(2) == 10
    assert cfg.delay_before_attempt(30) == 10
    assert cfg.worst_case_seconds() == 5 + 29 * 10
    assert cfg.worst_case_seconds() <= cfg.initial_delay_s + cfg.max_attempts * cfg.interval_s
    assert cfg.deadline_seconds() == cfg.initial_delay_s + cfg.max_attempts * cfg.interval_s == 305


def test_exponential_backoff_is_capped():
    cfg = PollingConfig(initial_delay_s=2, interval_s=1, max_attempts=6, backoff_factor=2.0, max_interval_s=4)

    assert [cfg.delay_before_attempt(n) for n in range(1, 7)] == [2, 1, 2, 4, 4, 4]
    assert cfg.worst_case_seconds() == 17
    assert cfg.deadline_seconds() == 21


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("JUDGE_PROVIDER", "Sphere")
    monkeypatch.setenv("JUDGE_LANGUAGES", '{"Python": 99}')
    monkeypatch.setenv("POLL_MAX_ATTEMPTS", "0")
    monkeypatch.setenv("POLL_BACKOFF_FACTOR", "0.5")

    settings = Settings()
    judge = settings.judge_config()
    polling = settings.polling_config()

    assert judge.provider == "sphere"
    assert judge.languages == {"python": 99}
    assert judge.output_delimiter == "\n"
    assert polling.max_attempts == 1
    assert polling.backoff_factor == 1.0


def test_invalid_language_table_is_rejected(monkeypatch):
    monkeypatch.setenv("JUDGE_LANGUAGES", "[1, 2]")
    with pytest.raises(ValueError):
        Settings()
