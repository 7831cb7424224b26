from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from types import SimpleNamespace

import pytest

from config.validators import _require_jwt_secret, validate_startup_config


def _settings(**overrides):
    base = {
        "ENV": "dev",
        "JWT_SECRET": "test-secret",
        "STORE_BACKEND": "mongo",
        "MONGO_URL": "mongodb://localhost:27017",
        "GCS_BUCKET": "transcripts-media",
        "MOCK_STORAGE": False,
        "MOCK_SPEECH": False,
    }
    base.update(overrides)
    return SimpleNamespace(**base)


@pytest.mark.parametrize("jwt_secret", ["", "   "])
def test_require_jwt_secret_fails_when_empty(jwt_secret):
    with pytest.raises(RuntimeError, match="JWT_SECRET"):
        _require_jwt_secret(_settings(JWT_SECRET=jwt_secret))


def test_validate_startup_config_raises_on_missing_bucket():
    with pytest.raises(RuntimeError, match="GCS_BUCKET"):
        validate_startup_config(_settings(GCS_BUCKET=""))


def test_bucket_not_required_when_storage_mocked():
    validate_startup_config(_settings(GCS_BUCKET="", MOCK_STORAGE=True))


def test_validate_startup_config_raises_on_missing_mongo_url():
    with pytest.raises(RuntimeError, match="MONGO_URL"):
        validate_startup_config(_settings(MONGO_URL=""))


def test_prod_rejects_memory_store():
    with pytest.raises(RuntimeError, match="STORE_BACKEND=memory"):
        validate_startup_config(_settings(ENV="prod", STORE_BACKEND="memory"))


@pytest.mark.parametrize("flag", ["MOCK_STORAGE", "MOCK_SPEECH"])
def test_prod_rejects_mock_providers(flag):
    with pytest.raises(RuntimeError, match="MOCK_"):
        validate_startup_config(_settings(ENV="prod", **{flag: True}))


def test_validate_startup_config_logs_warning_for_dev_doubles(caplog):
    caplog.set_level("WARNING")

    validate_startup_config(_settings(STORE_BACKEND="memory", MOCK_SPEECH=True))

    assert "STORE_BACKEND=memory" in caplog.text
    assert "MOCK_SPEECH" in caplog.text


def test_validate_startup_config_passes_with_valid_required_config():
    validate_startup_config(_settings())


def test_require_jwt_secret_rejects_asymmetric_algorithm():
    with pytest.raises(RuntimeError, match="JWT_ALGORITHM=RS256"):
        _require_jwt_secret(_settings(JWT_ALGORITHM="RS256"))
