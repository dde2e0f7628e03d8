"""Client-side session context and a thin HTTP client for the API.

The session holds the identity returned by login and is passed explicitly
to the client; `load`/`save`/`clear` define its lifecycle.
"""
import os
import json

import requests

from errors import ErrorKind

SESSION_FIELDS = ('token', 'user_id', 'username', 'email')


class ClientSession:
    def __init__(self, token=None, user_id=None, username=None, email=None):
        self.token = token
        self.user_id = user_id
        self.username = username
        self.email = email

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token and self.user_id)

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in SESSION_FIELDS}

    @classmethod
    def load(cls, path):
        """Read a saved session; a missing or unreadable file gives an empty one."""
        if not os.path.exists(path):
            return cls()
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError):
            return cls()
        return cls(**{k: data.get(k) for k in SESSION_FIELDS})

    def save(self, path):
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2)

    def clear(self, path=None):
        for name in SESSION_FIELDS:
            setattr(self, name, None)
        if path and os.path.exists(path):
            os.remove(path)


class ApiError(Exception):
    def __init__(self, kind, message, status):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status


class MediDiagClient:
    def __init__(self, base_url, session=None, session_path=None, http=None, timeout=90):
        self.base_url = base_url.rstrip('/')
        self.session = session or ClientSession()
        self.session_path = session_path
        self.http = http or requests.Session()
        self.timeout = timeout

    def _headers(self):
        if self.session.token:
            return {'auth-token': self.session.token}
        return {}

    def _call(self, method, path, body=None):
        response = self.http.request(method, self.base_url + path, json=body,
                                     headers=self._headers(), timeout=self.timeout)
        try:
            data = response.json()
        except ValueError:
            data = None
        if not response.ok:
            if isinstance(data, dict):
                kind = data.get('kind', ErrorKind.INTERNAL.value)
                message = data.get('error', response.reason)
            else:
                kind, message = ErrorKind.INTERNAL.value, response.text or response.reason
            try:
                kind = ErrorKind(kind)
            except ValueError:
                pass
            raise ApiError(kind, message, response.status_code)
        if not isinstance(data, (dict, list)):
            raise ApiError(ErrorKind.INTERNAL, 'Unexpected response from server', response.status_code)
        return data

    def register(self, username, email, password):
        return self._call('POST', '/api/auth/register',
                          {'username': username, 'email': email, 'password': password})['user']

    def login(self, email, password):
        data = self._call('POST', '/api/auth/login', {'email': email, 'password': password})
        self.session.token = data['token']
        self.session.user_id = data['userId']
        self.session.username = data['username']
        self.session.email = email
        if self.session_path:
            self.session.save(self.session_path)
        return self.session

    def logout(self):
        self.session.clear(self.session_path)

    def analyze(self, symptoms):
        return self._call('POST', '/api/analyze',
                          {'userId': self.session.user_id, 'symptoms': symptoms})

    def history(self):
        return self._call('GET', f'/api/analyze/history/{self.session.user_id}')
