import pytest


def test_settings_read_required_values_from_env(settings):
    assert settings.imagekit_public_key == "public_test_key"
    assert settings.imagekit_url_endpoint == "https://ik.imagekit.io/library"
    assert settings.imagekit_grant_ttl == 1800
    assert settings.cors_origins == ["https://library.example.com", "http://localhost:3000"]
    assert settings.protected_prefixes == ["/admin", "/dashboard"]


def test_missing_private_key_is_a_configuration_error(monkeypatch):
    from app.core.config import load_settings
    from app.core.errors import ConfigurationError

    monkeypatch.delenv("IMAGEKIT_PRIVATE_KEY", raising=False)
    monkeypatch.delenv("NEXT_IMAGE_KIT_PRIVATE_KEY", raising=False)

    with pytest.raises(ConfigurationError) as excinfo:
        load_settings(_env_file=None)
    assert "imagekit_private_key" in str(excinfo.value).lower()


def test_blank_api_endpoint_is_rejected(monkeypatch):
    from app.core.config import load_settings
    from app.core.errors import ConfigurationError

    monkeypatch.setenv("API_ENDPOINT", "   ")
    with pytest.raises(ConfigurationError):
        load_settings(_env_file=None)


def test_next_style_env_names_are_accepted(monkeypatch):
    from app.core.config import load_settings

    monkeypatch.delenv("IMAGEKIT_PRIVATE_KEY", raising=False)
    monkeypatch.setenv("NEXT_IMAGE_KIT_PRIVATE_KEY", "from-next")
    assert load_settings(_env_file=None).imagekit_private_key == "from-next"


def test_grant_ttl_above_one_hour_is_rejected(monkeypatch):
    from app.core.config import load_settings
    from app.core.errors import ConfigurationError

    monkeypatch.setenv("IMAGEKIT_GRANT_TTL", "7200")
    with pytest.raises(ConfigurationError):
        load_settings(_env_file=None)


def test_production_refuses_default_jwt_secret(monkeypatch):
    from app.core.config import load_settings
    from app.core.errors import ConfigurationError

    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("JWT_SECRET_KEY", "change-me")
    with pytest.raises(ConfigurationError):
        load_settings(_env_file=None)


def test_create_app_fails_fast_without_private_key(settings):
    from app.core.errors import ConfigurationError
    from app.main import create_app

    broken = settings.model_copy(update={"imagekit_private_key": ""})
    with pytest.raises(ConfigurationError):
        create_app(broken)
