import os

from dotenv import load_dotenv

from errors import ConfigError

GROQ_API_URL = 'https://api.groq.com/openai/v1/chat/completions'
GROQ_MODEL = 'llama-3.3-70b-versatile'


def _env_number(name, default, cast=int):
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return cast(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}")


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Process-wide settings. Build with `from_env()` or pass overrides."""

    def __init__(self, **overrides):
        self.JWT_SECRET = None
        self.GROQ_API_KEY = None
        self.GROQ_API_URL = GROQ_API_URL
        self.GROQ_MODEL = GROQ_MODEL
        self.AI_TIMEOUT_SECONDS = 60
        self.MEDICINE_REGION = 'India'
        self.MONGO_URI = None
        self.MONGO_DB = None
        self.DATA_DIR = 'data'
        self.BCRYPT_ROUNDS = 10
        self.TOKEN_TTL_HOURS = 168  # 7 days
        self.REQUIRE_AUTH = True
        self.LOG_LEVEL = 'INFO'
        self.PORT = 5050
        for key, value in overrides.items():
            if not hasattr(self, key):
                raise ConfigError(f"Unknown setting: {key}")
            setattr(self, key, value)

    @classmethod
    def from_env(cls):
        load_dotenv()
        return cls(
            JWT_SECRET=os.getenv('JWT_SECRET'),
            GROQ_API_KEY=os.getenv('GROQ_API_KEY'),
            GROQ_API_URL=os.getenv('GROQ_API_URL', GROQ_API_URL),
            GROQ_MODEL=os.getenv('GROQ_MODEL', GROQ_MODEL),
            AI_TIMEOUT_SECONDS=_env_number('AI_TIMEOUT_SECONDS', 60, float),
            MEDICINE_REGION=os.getenv('MEDICINE_REGION', 'India'),
            MONGO_URI=os.getenv('MONGO_URI'),
            MONGO_DB=os.getenv('MONGO_DB'),
            DATA_DIR=os.getenv('DATA_DIR', 'data'),
            BCRYPT_ROUNDS=_env_number('BCRYPT_ROUNDS', 10),
            TOKEN_TTL_HOURS=_env_number('TOKEN_TTL_HOURS', 168),
            REQUIRE_AUTH=_env_bool('REQUIRE_AUTH', True),
            LOG_LEVEL=os.getenv('LOG_LEVEL', 'INFO'),
            PORT=_env_number('PORT', 5050),
        )

    def validate(self):
        if not self.JWT_SECRET:
            raise ConfigError("JWT_SECRET is not set; refusing to sign tokens with a default secret")
        if not 4 <= self.BCRYPT_ROUNDS <= 31:
            raise ConfigError(f"BCRYPT_ROUNDS must be between 4 and 31, got {self.BCRYPT_ROUNDS}")
        if self.TOKEN_TTL_HOURS <= 0:
            raise ConfigError("TOKEN_TTL_HOURS must be positive")
        return self
