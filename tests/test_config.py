import pytest

from todoapi.core.config import Settings


def test_environment_flag(monkeypatch):
    monkeypatch.setenv("ENV", " Development ")
    assert Settings().is_development

    monkeypatch.setenv("ENV", "production")
    assert not Settings().is_development


def test_typed_values_and_origins(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("LIMITER_RPS", "0.5")
    monkeypatch.setenv("LIMITER_ENABLED", "off")
    monkeypatch.setenv("CORS_TRUSTED_ORIGINS", "https://a.example.com, ,https://b.example.com")

    settings = Settings()

    assert settings.port == 8080
    assert settings.limiter_rps == 0.5
    assert settings.limiter_enabled is False
    assert settings.cors_trusted_origins == ["https://a.example.com", "https://b.example.com"]


@pytest.mark.parametrize(
    "key,value",
    [("PORT", "eighty"), ("DB_QUERY_TIMEOUT", "soon"), ("LIMITER_ENABLED", "maybe")],
)
def test_malformed_values_fail_fast(monkeypatch, key, value):
    monkeypatch.setenv(key, value)

    with pytest.raises(RuntimeError, match=key):
        Settings()
