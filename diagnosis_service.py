import re
import json
import logging
from collections import namedtuple
from datetime import datetime, timezone

from pydantic import ValidationError as SchemaError

from errors import AIResponseError, ServiceError, StoreUnavailable, ValidationError
from schemas import DiagnosisResult
from stores import diagnosis_record

logger = logging.getLogger(__name__)

# Result of the best-effort write; analyze() logs it and moves on.
PersistOutcome = namedtuple('PersistOutcome', ['saved', 'record_id', 'error'])


def _utcnow():
    return datetime.now(timezone.utc)


def parse_diagnosis(text: str) -> dict:
    """Parse model output into {disease, probability, advice, medicines}."""
    if not text or not text.strip():
        raise AIResponseError(detail='empty response')
    text = text.strip()
    if text.startswith('```'):
        text = re.sub(r"^```[a-zA-Z]*\n?", "", text)
        if text.endswith('```'):
            text = text[:-3]
        text = text.strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise AIResponseError(detail=f"invalid JSON: {e}")

    if not isinstance(parsed, dict):
        raise AIResponseError(detail=f"expected a JSON object, got {type(parsed).__name__}")

    try:
        return DiagnosisResult(**parsed).model_dump()
    except SchemaError as e:
        raise AIResponseError(detail=f"wrong shape: {e.error_count()} field error(s): {e.errors()}")


class DiagnosisService:

    def __init__(self, ai, diagnoses, clock=_utcnow):
        self.ai = ai
        self.diagnoses = diagnoses
        self.clock = clock

    def analyze(self, user_id, symptoms) -> dict:
        if not _present(user_id) or not _present(symptoms):
            raise ValidationError('Missing userId or symptoms')

        logger.info("Analyze request for user %s (%d chars of symptoms)", user_id, len(symptoms))
        try:
            raw = self.ai.complete(symptoms)
        except ServiceError as e:
            logger.error("AI call failed for user %s: %s", user_id, e.detail or e.message)
            raise

        try:
            result = parse_diagnosis(raw)
        except AIResponseError as e:
            logger.error("Unreadable AI answer (%s): %r", e.detail, raw[:500])
            raise

        outcome = self.persist(user_id, symptoms, result)
        if outcome.saved:
            logger.info("Saved diagnosis %s", outcome.record_id)
        else:
            logger.warning("Diagnosis not saved for user %s: %s", user_id, outcome.error)
        return result

    def persist(self, user_id, symptoms, result) -> PersistOutcome:
        """Write one diagnosis record. Never raises."""
        record = diagnosis_record(user_id, symptoms, result, self.clock())
        try:
            record_id = self.diagnoses.insert(record)
        except ServiceError as e:
            return PersistOutcome(False, None, e.detail or e.message)
        except Exception as e:
            logger.exception("Unexpected error while saving diagnosis")
            return PersistOutcome(False, None, f"{type(e).__name__}: {e}")
        return PersistOutcome(True, record_id, None)

    def list_history(self, user_id) -> list:
        if not _present(user_id):
            raise ValidationError('Missing userId')
        try:
            return self.diagnoses.find_by_user(user_id)
        except StoreUnavailable as e:
            logger.error("History fetch failed for user %s: %s", user_id, e.detail or e.message)
            raise StoreUnavailable("Failed to fetch history", detail=e.detail) from e


def _present(value):
    return isinstance(value, str) and bool(value.strip())
