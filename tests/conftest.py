import json

import pytest

from app import create_app
from auth_service import AuthService
from config import Config
from diagnosis_service import DiagnosisService
from errors import StoreUnavailable
from stores import JsonDiagnosisStore, JsonUserStore

COMMON_COLD = {
    "disease": "Common Cold",
    "probability": "85%",
    "advice": "Rest and hydrate",
    "medicines": "Paracetamol, Cetirizine",
}


class StubAI:
    """Stands in for the model: returns canned content or raises."""

    def __init__(self, content=None, error=None):
        self.content = json.dumps(COMMON_COLD) if content is None else content
        self.error = error
        self.calls = []

    def complete(self, symptoms):
        self.calls.append(symptoms)
        if self.error:
            raise self.error
        return self.content


class FailingDiagnosisStore:
    def __init__(self):
        self.attempts = 0

    def insert(self, record):
        self.attempts += 1
        raise StoreUnavailable(detail='simulated write failure')

    def find_by_user(self, user_id):
        raise StoreUnavailable(detail='simulated read failure')


@pytest.fixture
def config(tmp_path):
    return Config(JWT_SECRET='test-secret', BCRYPT_ROUNDS=4, DATA_DIR=str(tmp_path))


@pytest.fixture
def user_store(tmp_path):
    return JsonUserStore(str(tmp_path / 'users.json'))


@pytest.fixture
def diagnosis_store(tmp_path):
    return JsonDiagnosisStore(str(tmp_path / 'diagnoses.json'))


@pytest.fixture
def stub_ai():
    return StubAI()


@pytest.fixture
def auth(user_store):
    return AuthService(user_store, 'test-secret', rounds=4)


@pytest.fixture
def diagnosis(stub_ai, diagnosis_store):
    return DiagnosisService(stub_ai, diagnosis_store)


@pytest.fixture
def app(config, stub_ai, user_store, diagnosis_store):
    return create_app(config, ai=stub_ai, user_store=user_store, diagnosis_store=diagnosis_store)


@pytest.fixture
def client(app):
    return app.test_client()
