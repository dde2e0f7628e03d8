import pytest

from app import create_app
from config import Config
from errors import ConfigError


def test_missing_secret_refuses_to_start(tmp_path):
    with pytest.raises(ConfigError):
        create_app(Config(DATA_DIR=str(tmp_path)))


def test_unknown_setting_is_rejected():
    with pytest.raises(ConfigError):
        Config(JWT_SECERT='typo')


def test_from_env(monkeypatch):
    monkeypatch.setenv('JWT_SECRET', 'from-env')
    monkeypatch.setenv('REQUIRE_AUTH', 'false')
    monkeypatch.setenv('BCRYPT_ROUNDS', '12')
    monkeypatch.delenv('MONGO_URI', raising=False)

    config = Config.from_env().validate()

    assert config.JWT_SECRET == 'from-env'
    assert config.REQUIRE_AUTH is False
    assert config.BCRYPT_ROUNDS == 12
    assert config.MONGO_URI is None


def test_file_store_is_default(tmp_path):
    app = create_app(Config(JWT_SECRET='s', DATA_DIR=str(tmp_path), BCRYPT_ROUNDS=4))
    client = app.test_client()

    client.post('/api/auth/register', json={'username': 'a', 'email': 'a@example.com', 'password': 'pw'})

    assert (tmp_path / 'users.json').exists()


@pytest.mark.parametrize('name', ['PORT', 'BCRYPT_ROUNDS', 'TOKEN_TTL_HOURS', 'AI_TIMEOUT_SECONDS'])
def test_non_numeric_setting_is_config_error(monkeypatch, name):
    monkeypatch.setenv(name, 'abc')

    with pytest.raises(ConfigError) as excinfo:
        Config.from_env()
    assert name in str(excinfo.value)
