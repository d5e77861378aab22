import pytest

from src.config import Settings, coerce_int
from src.webhooks.application.options import PipelineOptions


@pytest.mark.parametrize(
    "value, expected",
    [(None, 50), ("", 50), ("abc", 50), ("0", 50), (-3, 50), ("25", 25), (7.9, 7), (True, 50)],
)
def test_coerce_int(value, expected):
    assert coerce_int(value, 50, 1) == expected


def test_invalid_pipeline_settings_fall_back(monkeypatch):
    monkeypatch.setenv("WEBHOOK_DISPATCH_LIMIT", "lots")
    monkeypatch.setenv("WEBHOOK_RETRY_BACKOFF_MS", "-5")
    monkeypatch.setenv("WEBHOOK_MAX_RETRY_ATTEMPTS", "8")
    cfg = Settings()
    assert cfg.WEBHOOK_DISPATCH_LIMIT == 50
    assert cfg.WEBHOOK_RETRY_BACKOFF_MS == 60_000
    assert cfg.WEBHOOK_MAX_RETRY_ATTEMPTS == 8


def test_backoff_zero_is_allowed():
    assert Settings(WEBHOOK_RETRY_BACKOFF_MS=0).WEBHOOK_RETRY_BACKOFF_MS == 0


def test_pipeline_options_resolve_against_settings():
    cfg = Settings(DOMAIN_EVENT_BATCH_LIMIT=20, WEBHOOK_DISPATCH_LIMIT=30)
    opts = PipelineOptions(domain_event_limit="5", webhook_limit="nope", max_retry_attempts=0).resolve(cfg)
    assert opts.domain_event_limit == 5
    assert opts.webhook_limit == 30
    assert opts.max_retry_attempts == cfg.WEBHOOK_MAX_RETRY_ATTEMPTS


def test_cors_origins_from_csv():
    assert Settings(BACKEND_CORS_ORIGINS="https://a.test, https://b.test").cors_origins() == [
        "https://a.test",
        "https://b.test",
    ]
