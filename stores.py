import os
import json
import uuid
import logging
from datetime import datetime, timezone
from threading import Lock

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import DuplicateEmail, StoreUnavailable

logger = logging.getLogger(__name__)

USERS_FILE = 'users.json'
DIAGNOSES_FILE = 'diagnoses.json'
DATE_FORMAT = '%Y-%m-%dT%H:%M:%S.%fZ'


def format_date(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime(DATE_FORMAT)


def diagnosis_record(user_id, symptoms, result: dict, date: datetime) -> dict:
    """Map an AI result onto the stored diagnosis fields."""
    return {
        'userId': user_id,
        'symptoms': symptoms,
        'predictedDisease': result.get('disease'),
        'confidenceScore': result.get('probability'),
        'advice': result.get('advice'),
        'medicines': result.get('medicines'),
        'date': date,
    }


# ----------------- JSON file backend -----------------

class _JsonFile:
    """A JSON document on disk, loaded once and rewritten on every change."""

    def __init__(self, path, empty):
        self.path = path
        self.lock = Lock()
        self.data = self._load(empty)

    def _load(self, empty):
        if os.path.exists(self.path):
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except json.JSONDecodeError as e:
                raise StoreUnavailable(detail=f"{self.path} is corrupt: {e}")
            except OSError as e:
                raise StoreUnavailable(detail=f"cannot read {self.path}: {e}")
        return empty

    def save(self):
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump(self.data, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise StoreUnavailable(detail=f"cannot write {self.path}: {e}")


class JsonUserStore:
    def __init__(self, path):
        self._file = _JsonFile(path, {})

    def find_by_email(self, email):
        with self._file.lock:
            for user_id, user in self._file.data.items():
                if user['email'] == email:
                    return dict(user, _id=user_id)
        return None

    def find_by_id(self, user_id):
        with self._file.lock:
            user = self._file.data.get(user_id)
            return dict(user, _id=user_id) if user else None

    def insert(self, username, email, password_hash):
        with self._file.lock:
            if any(u['email'] == email for u in self._file.data.values()):
                raise DuplicateEmail()
            user_id = uuid.uuid4().hex
            self._file.data[user_id] = {
                'username': username,
                'email': email,
                'password': password_hash,
            }
            try:
                self._file.save()
            except StoreUnavailable:
                del self._file.data[user_id]
                raise
        return user_id

    def count(self):
        with self._file.lock:
            return len(self._file.data)


class JsonDiagnosisStore:
    def __init__(self, path):
        self._file = _JsonFile(path, [])

    def insert(self, record: dict):
        doc = dict(record, _id=uuid.uuid4().hex, date=format_date(record['date']))
        with self._file.lock:
            self._file.data.append(doc)
            try:
                self._file.save()
            except StoreUnavailable:
                self._file.data.pop()
                raise
        return doc['_id']

    def find_by_user(self, user_id):
        with self._file.lock:
            docs = [dict(d) for d in self._file.data if d.get('userId') == user_id]
        # same fixed-width format everywhere, so string order is time order
        docs.sort(key=lambda d: d['date'], reverse=True)
        return docs

    def count(self):
        with self._file.lock:
            return len(self._file.data)


# ----------------- MongoDB backend -----------------

def _object_id(value):
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as e:
        raise StoreUnavailable(detail=f"malformed user id {value!r}: {e}")


class MongoUserStore:
    def __init__(self, db):
        self.users = db.users
        try:
            self.users.create_index('email', unique=True)
        except PyMongoError as e:
            logger.warning("Could not ensure unique email index: %s", e)

    @staticmethod
    def _out(doc):
        if doc is None:
            return None
        doc['_id'] = str(doc['_id'])
        return doc

    def find_by_email(self, email):
        try:
            return self._out(self.users.find_one({'email': email}))
        except PyMongoError as e:
            raise StoreUnavailable(detail=str(e))

    def find_by_id(self, user_id):
        try:
            return self._out(self.users.find_one({'_id': _object_id(user_id)}))
        except PyMongoError as e:
            raise StoreUnavailable(detail=str(e))

    def insert(self, username, email, password_hash):
        try:
            result = self.users.insert_one({
                'username': username,
                'email': email,
                'password': password_hash,
            })
        except DuplicateKeyError:
            raise DuplicateEmail()
        except PyMongoError as e:
            raise StoreUnavailable(detail=str(e))
        return str(result.inserted_id)

    def count(self):
        try:
            return self.users.count_documents({})
        except PyMongoError as e:
            raise StoreUnavailable(detail=str(e))


class MongoDiagnosisStore:
    def __init__(self, db):
        self.diagnoses = db.diagnoses
        try:
            self.diagnoses.create_index([('userId', 1), ('date', DESCENDING)])
        except PyMongoError as e:
            logger.warning("Could not ensure history index: %s", e)

    @staticmethod
    def _out(doc):
        doc['_id'] = str(doc['_id'])
        doc['userId'] = str(doc['userId'])
        doc['date'] = format_date(doc['date'])
        return doc

    def insert(self, record: dict):
        doc = dict(record, userId=_object_id(record['userId']))
        try:
            result = self.diagnoses.insert_one(doc)
        except PyMongoError as e:
            raise StoreUnavailable(detail=str(e))
        return str(result.inserted_id)

    def find_by_user(self, user_id):
        query = {'userId': _object_id(user_id)}
        try:
            return [self._out(d) for d in self.diagnoses.find(query).sort('date', DESCENDING)]
        except PyMongoError as e:
            raise StoreUnavailable(detail=str(e))

    def count(self):
        try:
            return self.diagnoses.count_documents({})
        except PyMongoError as e:
            raise StoreUnavailable(detail=str(e))


def open_stores(config):
    """Return (user_store, diagnosis_store) for the configured backend."""
    if config.MONGO_URI:
        client = MongoClient(config.MONGO_URI, tz_aware=False)
        if config.MONGO_DB:
            db = client[config.MONGO_DB]
        else:
            db = client.get_default_database('medidiag')
        logger.info("Using MongoDB store (database %s)", db.name)
        return MongoUserStore(db), MongoDiagnosisStore(db)

    logger.info("MONGO_URI not set; using JSON file store in %s", config.DATA_DIR)
    return (
        JsonUserStore(os.path.join(config.DATA_DIR, USERS_FILE)),
        JsonDiagnosisStore(os.path.join(config.DATA_DIR, DIAGNOSES_FILE)),
    )
