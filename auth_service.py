import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from errors import DuplicateEmail, InvalidCredentials, Unauthorized, ValidationError

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = 'HS256'
# bcrypt only reads this many bytes and newer releases refuse longer input
MAX_PASSWORD_BYTES = 72


def _require(**fields):
    missing = [name for name, value in fields.items()
               if not isinstance(value, str) or not value.strip()]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def _too_long(password):
    return len(password.encode('utf-8')) > MAX_PASSWORD_BYTES


class AuthService:
    """Registers users and issues signed session tokens."""

    def __init__(self, users, secret: str, rounds: int = 10, token_ttl_hours: int = 168):
        self.users = users
        self.secret = secret
        self.rounds = rounds
        self.token_ttl = timedelta(hours=token_ttl_hours)
        # compared against when the email is unknown
        self._dummy_hash = bcrypt.hashpw(b'not-a-real-password', bcrypt.gensalt(rounds=rounds))

    def register(self, username, email, password) -> str:
        _require(username=username, email=email, password=password)
        if _too_long(password):
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        # the store re-checks under its own lock or unique index
        if self.users.find_by_email(email):
            logger.info("Registration rejected, email already exists")
            raise DuplicateEmail()

        hashed_pw = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=self.rounds)).decode('utf-8')
        user_id = self.users.insert(username, email, hashed_pw)
        logger.info("Registered user %s", user_id)
        return user_id

    def login(self, email, password) -> dict:
        _require(email=email, password=password)
        if _too_long(password):
            logger.info("Login failed: password longer than %d bytes", MAX_PASSWORD_BYTES)
            raise InvalidCredentials(detail='password too long')

        user = self.users.find_by_email(email)
        if not user:
            bcrypt.checkpw(password.encode('utf-8'), self._dummy_hash)
            logger.info("Login failed: email not found")
            raise InvalidCredentials(detail='email not found')

        if not bcrypt.checkpw(password.encode('utf-8'), user['password'].encode('utf-8')):
            logger.info("Login failed for user %s: password mismatch", user['_id'])
            raise InvalidCredentials(detail='password mismatch')

        return {
            'token': self.generate_token(user['_id']),
            'userId': user['_id'],
            'username': user['username'],
        }

    def generate_token(self, user_id: str) -> str:
        now = datetime.now(timezone.utc)
        return jwt.encode({
            '_id': user_id,
            'iat': now,
            'exp': now + self.token_ttl,
        }, self.secret, algorithm=TOKEN_ALGORITHM)

    def verify_token(self, token: str) -> str:
        """Return the user id carried by a valid token."""
        if not token:
            raise Unauthorized('Token is missing')
        try:
            data = jwt.decode(token, self.secret, algorithms=[TOKEN_ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise Unauthorized('Token has expired')
        except jwt.InvalidTokenError as e:
            raise Unauthorized('Token is invalid', detail=str(e))
        user_id = data.get('_id')
        if not user_id:
            raise Unauthorized('Token is invalid', detail='no _id claim')
        return user_id
