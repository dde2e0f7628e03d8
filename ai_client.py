import logging

import requests

from errors import AIServiceError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a medical AI. Analyze the symptoms. Output ONLY valid JSON with these keys: "
    "'disease', 'probability', 'advice', 'medicines'. "
    "For 'medicines', list generic names of common over-the-counter drugs applicable for the condition in {region}. "
    "Return a single string of generic drug names separated by commas (e.g., 'Paracetamol, Cetirizine'). "
    "Do not say 'Here is the JSON'. Just output the JSON."
)


def build_messages(symptoms: str, region: str = 'India') -> list:
    return [
        {'role': 'system', 'content': SYSTEM_PROMPT.format(region=region)},
        {'role': 'user', 'content': f"Symptoms: {symptoms}"},
    ]


class GroqClient:
    """Chat-completions client for the diagnosis model.

    Returns the raw message content; parsing is left to the caller.
    """

    def __init__(self, api_key, url, model, timeout=60, region='India', session=None):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.timeout = timeout
        self.region = region
        self.session = session or requests.Session()

    def complete(self, symptoms: str) -> str:
        if not self.api_key:
            raise AIServiceError(detail='GROQ_API_KEY is not configured')

        headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json'
        }
        payload = {
            'model': self.model,
            'messages': build_messages(symptoms, self.region),
            'temperature': 0,
            'response_format': {'type': 'json_object'},
        }

        try:
            response = self.session.post(self.url, headers=headers, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise AIServiceError(detail=f"{type(e).__name__}: {e}")

        logger.info("AI service status code: %s", response.status_code)
        if not response.ok:
            raise AIServiceError(detail=f"HTTP {response.status_code}: {response.text[:500]}")

        try:
            content = response.json()['choices'][0]['message']['content']
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AIServiceError(detail=f"unexpected response envelope: {e!r}")
        if not isinstance(content, str):
            raise AIServiceError(detail='message content is not text')
        return content


def client_from_config(config):
    return GroqClient(
        api_key=config.GROQ_API_KEY,
        url=config.GROQ_API_URL,
        model=config.GROQ_MODEL,
        timeout=config.AI_TIMEOUT_SECONDS,
        region=config.MEDICINE_REGION,
    )
