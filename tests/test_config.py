from factory_ledger.core.config import Settings


def test_settings_only_declare_keys_the_app_reads():
    for name in ("ENVIRONMENT", "DEBUG", "HOST", "PORT"):
        assert name not in Settings.model_fields


def test_stale_env_keys_are_ignored(monkeypatch):
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("STORE_TIMEOUT_SECONDS", "3.5")

    loaded = Settings(_env_file=None)

    assert loaded.STORE_TIMEOUT_SECONDS == 3.5
    assert not hasattr(loaded, "PORT")
