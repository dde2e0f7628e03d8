import json

import pytest
import requests

from ai_client import GroqClient, build_messages, client_from_config
from config import Config
from errors import AIServiceError


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=''):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._body = body
        self.text = text or json.dumps(body)

    def json(self):
        if self._body is None:
            raise ValueError('no JSON')
        return self._body


class FakeHttp:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.requests.append({'url': url, 'headers': headers, 'json': json, 'timeout': timeout})
        if self.error:
            raise self.error
        return self.response


def completion(content):
    return {'choices': [{'message': {'role': 'assistant', 'content': content}}]}


def make_client(http, api_key='gsk_test'):
    return GroqClient(api_key, 'https://example.test/chat', 'llama-test', timeout=5, session=http)


def test_request_shape():
    http = FakeHttp(FakeResponse(body=completion('{"disease": "Flu"}')))

    content = make_client(http).complete('fever and chills')

    assert content == '{"disease": "Flu"}'
    sent = http.requests[0]
    assert sent['url'] == 'https://example.test/chat'
    assert sent['timeout'] == 5
    assert sent['headers']['Authorization'] == 'Bearer gsk_test'
    payload = sent['json']
    assert payload['model'] == 'llama-test'
    assert payload['temperature'] == 0
    assert payload['response_format'] == {'type': 'json_object'}
    assert payload['messages'][1] == {'role': 'user', 'content': 'Symptoms: fever and chills'}


def test_system_prompt_names_keys_and_region():
    system = build_messages('cough', region='Kenya')[0]

    assert system['role'] == 'system'
    for key in ('disease', 'probability', 'advice', 'medicines'):
        assert f"'{key}'" in system['content']
    assert 'in Kenya' in system['content']


def test_missing_api_key_fails_without_calling():
    http = FakeHttp()

    with pytest.raises(AIServiceError):
        make_client(http, api_key=None).complete('cough')
    assert http.requests == []


def test_non_2xx_is_service_error():
    http = FakeHttp(FakeResponse(status_code=429, body={'error': 'rate limited'}))

    with pytest.raises(AIServiceError) as excinfo:
        make_client(http).complete('cough')
    assert 'HTTP 429' in excinfo.value.detail


def test_network_error_is_service_error():
    http = FakeHttp(error=requests.exceptions.ConnectTimeout('timed out'))

    with pytest.raises(AIServiceError) as excinfo:
        make_client(http).complete('cough')
    assert excinfo.value.detail.startswith('ConnectTimeout')


@pytest.mark.parametrize('body', [{'choices': []}, {'unexpected': True}, None])
def test_bad_envelope_is_service_error(body):
    http = FakeHttp(FakeResponse(body=body, text='<html>'))

    with pytest.raises(AIServiceError):
        make_client(http).complete('cough')


def test_client_from_config():
    config = Config(JWT_SECRET='x', GROQ_API_KEY='gsk', AI_TIMEOUT_SECONDS=12, MEDICINE_REGION='Nepal')

    client = client_from_config(config)

    assert client.api_key == 'gsk'
    assert client.timeout == 12
    assert client.region == 'Nepal'
    assert client.model == config.GROQ_MODEL
