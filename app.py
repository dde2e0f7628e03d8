import logging
from functools import wraps

from flask import Flask, Blueprint, current_app, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from ai_client import client_from_config
from auth_service import AuthService
from config import Config
from diagnosis_service import DiagnosisService
from errors import ErrorKind, Forbidden, ServiceError, ValidationError
from stores import open_stores

logger = logging.getLogger(__name__)

TOKEN_HEADER = 'auth-token'

api = Blueprint('api', __name__, url_prefix='/api')


def configure_logging(level='INFO'):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _services():
    return current_app.extensions['medidiag']


def _request_token():
    token = request.headers.get(TOKEN_HEADER)
    if token:
        return token
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header.split(' ', 1)[1]
    return None


def token_required(f):
    """Pass the token's user id to the view, or None when auth is disabled."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not current_app.config['REQUIRE_AUTH']:
            return f(None, *args, **kwargs)
        current_user_id = _services()['auth'].verify_token(_request_token())
        return f(current_user_id, *args, **kwargs)
    return decorated


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _check_owner(current_user_id, user_id):
    if current_user_id is not None and user_id and current_user_id != user_id:
        raise Forbidden(detail=f"token for {current_user_id} used for {user_id}")


@api.route('/auth/register', methods=['POST'])
def register():
    data = _json_body()
    user_id = _services()['auth'].register(
        data.get('username'), data.get('email'), data.get('password'))
    return jsonify({'user': user_id})


@api.route('/auth/login', methods=['POST'])
def login():
    data = _json_body()
    result = _services()['auth'].login(data.get('email'), data.get('password'))
    response = jsonify(result)
    response.headers[TOKEN_HEADER] = result['token']
    return response


@api.route('/analyze', methods=['POST'])
@token_required
def analyze(current_user_id):
    data = _json_body()
    user_id = data.get('userId')
    _check_owner(current_user_id, user_id)
    result = _services()['diagnosis'].analyze(user_id, data.get('symptoms'))
    return jsonify(result)


@api.route('/analyze/history/<user_id>', methods=['GET'])
@token_required
def history(current_user_id, user_id):
    _check_owner(current_user_id, user_id)
    return jsonify(_services()['diagnosis'].list_history(user_id))


def handle_service_error(error: ServiceError):
    if error.detail:
        logger.warning("%s on %s %s: %s (%s)", error.kind.value, request.method, request.path,
                       error.message, error.detail)
    return jsonify(error.to_dict()), error.status_code


def handle_unexpected_error(error: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({'error': 'Internal server error', 'kind': ErrorKind.INTERNAL.value}), 500


def create_app(config=None, ai=None, user_store=None, diagnosis_store=None):
    """Build the Flask app. Collaborators can be injected; otherwise built from config."""
    config = (config or Config.from_env()).validate()

    app = Flask(__name__)
    app.config['REQUIRE_AUTH'] = config.REQUIRE_AUTH
    app.json.sort_keys = False
    CORS(app, resources={r"/api/*": {"origins": "*"}}, expose_headers=[TOKEN_HEADER])

    if user_store is None or diagnosis_store is None:
        default_users, default_diagnoses = open_stores(config)
        user_store = user_store or default_users
        diagnosis_store = diagnosis_store or default_diagnoses

    app.extensions['medidiag'] = {
        'auth': AuthService(user_store, config.JWT_SECRET,
                            rounds=config.BCRYPT_ROUNDS,
                            token_ttl_hours=config.TOKEN_TTL_HOURS),
        'diagnosis': DiagnosisService(ai or client_from_config(config), diagnosis_store),
    }

    app.register_blueprint(api)
    app.register_error_handler(ServiceError, handle_service_error)

    @app.errorhandler(Exception)
    def unexpected(error):
        # let Flask render its own 404/405 responses
        if isinstance(error, HTTPException):
            return error
        return handle_unexpected_error(error)

    @app.route('/')
    def index():
        return jsonify({'service': 'medidiag', 'status': 'ok'})

    if not config.GROQ_API_KEY and ai is None:
        logger.warning("GROQ_API_KEY is not set; every analyze request will fail")
    return app


if __name__ == '__main__':
    config = Config.from_env()
    configure_logging(config.LOG_LEVEL)
    app = create_app(config)
    logger.info("Starting Flask server on port %s", config.PORT)
    app.run(host='0.0.0.0', port=config.PORT)
