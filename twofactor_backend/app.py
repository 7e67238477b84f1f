"""
FLASK APP ENTRY POINT - TWO-FACTOR OTP SERVER

Builds the Flask app, enables CORS so a separate frontend can call the API,
wires the authenticator and its credential repository, and registers the
API blueprint.

Configuration keys (``create_app({...})`` or ``app.config``):
- TWOFACTOR_DATABASE : SQLite file for credentials
- TWOFACTOR_ISSUER   : issuer label used in otpauth URIs
- TWOFACTOR_DIGITS, TWOFACTOR_PERIOD (seconds), TWOFACTOR_WINDOW,
  TWOFACTOR_ALGORITHM : verification parameters
- TWOFACTOR_REPOSITORY : optional repository object overriding the database
"""
from flask import Flask, jsonify
from flask_cors import CORS

from twofactor_core.authenticator import Authenticator
from twofactor_core.config import VerificationConfig
from twofactor_core.errors import DecodingError, InvalidParameterError
from twofactor_database.db_manager import SQLiteCredentialRepository
from twofactor_database.setup_database import DATABASE_FILE

DEFAULT_CONFIG = {
    'TWOFACTOR_DATABASE': DATABASE_FILE,
    'TWOFACTOR_ISSUER': 'MyWebApp',
    'TWOFACTOR_DIGITS': 6,
    'TWOFACTOR_PERIOD': 30,
    'TWOFACTOR_WINDOW': 3,
    'TWOFACTOR_ALGORITHM': 'SHA1',
    'TWOFACTOR_REPOSITORY': None,
}


def create_app(config=None) -> Flask:
    app = Flask(__name__)
    app.config.from_mapping(DEFAULT_CONFIG)
    if config:
        app.config.from_mapping(config)

    # Allow the frontend (other origin) to call the API
    CORS(app)

    verification_config = VerificationConfig.from_mapping({
        'digits': app.config['TWOFACTOR_DIGITS'],
        'period': app.config['TWOFACTOR_PERIOD'],
        'window': app.config['TWOFACTOR_WINDOW'],
        'algorithm': app.config['TWOFACTOR_ALGORITHM'],
    })
    repository = app.config['TWOFACTOR_REPOSITORY']
    if repository is None:
        repository = SQLiteCredentialRepository(app.config['TWOFACTOR_DATABASE'])

    app.extensions['twofactor'] = {
        'authenticator': Authenticator(verification_config),
        'repository': repository,
    }

    @app.errorhandler(InvalidParameterError)
    @app.errorhandler(DecodingError)
    def handle_bad_parameter(error):
        return jsonify({"error": str(error)}), 400

    from .routes import otp_bp
    app.register_blueprint(otp_bp)

    @app.route('/', methods=['GET'])
    def index():
        return jsonify({
            "service": "two-factor OTP API",
            "endpoints": sorted(
                str(rule) for rule in app.url_map.iter_rules() if str(rule).startswith('/api/')
            ),
        })

    return app


if __name__ == '__main__':
    create_app().run(debug=True, host='0.0.0.0', port=5000)
