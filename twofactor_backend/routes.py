"""
OTP BACKEND API ROUTES - FLASK BLUEPRINT (MULTI-USER)

Every endpoint takes the username in the URL.

Examples:
curl -X POST http://localhost:5000/api/v2/enroll/alice -H "Content-Type: application/json" -d '{"issuer": "MyService"}'
curl -X POST http://localhost:5000/api/v2/verify_totp/alice -H "Content-Type: application/json" -d '{"code": "123456"}'

Failed verifications all look the same (401, "Invalid code") whether the
user is unknown, the code is wrong or it was already used.

The secret and its otpauth URIs are only returned once, by /enroll. There
is no endpoint that reads a stored secret back. /enroll itself replaces a
user's credential and must sit behind the host's own authentication.
"""

from flask import Blueprint, current_app, jsonify, request

otp_bp = Blueprint('otp', __name__, url_prefix='/api/v2')


def _engine():
    ext = current_app.extensions['twofactor']
    return ext['authenticator'], ext['repository']


def _json_object():
    """Request body as a dict; {} when absent, None when it is not a JSON object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    return data


def _code_from_body():
    data = _json_object()
    if not data or 'code' not in data:
        return None
    return data['code']


def _verification_response(user, method, ok):
    _, repository = _engine()
    log_attempt = getattr(repository, 'log_otp_attempt', None)
    if log_attempt is not None:
        log_attempt(user, method, ok)
    if ok:
        return jsonify({"valid": True, "user": user}), 200
    return jsonify({"valid": False, "error": "Invalid code"}), 401


@otp_bp.route('/enroll/<string:user>', methods=['POST'])
def enroll_user(user):
    """
    Create (or replace) the credential of a user.
    Endpoint: POST /api/v2/enroll/<username>
    Body (optional): {"issuer": "MyService", "account": "alice@example.com"}
    """
    data = _json_object()
    if data is None:
        return jsonify({"error": "Request body must be a JSON object"}), 400
    issuer = data.get('issuer', current_app.config['TWOFACTOR_ISSUER'])
    account = data.get('account', user)
    if not isinstance(issuer, str) or not isinstance(account, str):
        return jsonify({"error": "issuer and account must be strings"}), 400

    authenticator, repository = _engine()
    credential, totp_uri, hotp_uri = authenticator.enroll(repository, user, account, issuer)

    return jsonify({
        "message": f"Credential created for user '{user}'",
        "user": user,
        "secret": credential.key,
        "otp_uri": totp_uri,
        "hotp_uri": hotp_uri,
        "scratch_codes": list(credential.scratch_codes.formatted()),
        "verification_code": credential.verification_code,
    }), 201


@otp_bp.route('/verify_totp/<string:user>', methods=['POST'])
def verify_totp_for_user(user):
    """
    Verify a TOTP code.
    Endpoint: POST /api/v2/verify_totp/<username>
    Body: { "code": "123456" }
    """
    code = _code_from_body()
    if code is None:
        return jsonify({"error": "OTP code is required in JSON body"}), 400
    authenticator, repository = _engine()
    return _verification_response(user, 'totp', authenticator.authorize_user(repository, user, code))


@otp_bp.route('/verify_hotp/<string:user>', methods=['POST'])
def verify_hotp_for_user(user):
    """
    Verify an HOTP (counter-based) code.
    Endpoint: POST /api/v2/verify_hotp/<username>
    Body: { "code": "123456" }
    """
    code = _code_from_body()
    if code is None:
        return jsonify({"error": "OTP code is required in JSON body"}), 400
    authenticator, repository = _engine()
    return _verification_response(user, 'hotp', authenticator.authorize_hotp_user(repository, user, code))


@otp_bp.route('/verify_scratch/<string:user>', methods=['POST'])
def verify_scratch_for_user(user):
    """
    Consume a scratch (recovery) code.
    Endpoint: POST /api/v2/verify_scratch/<username>
    Body: { "code": "12345678" }
    """
    code = _code_from_body()
    if code is None:
        return jsonify({"error": "Scratch code is required in JSON body"}), 400
    authenticator, repository = _engine()
    return _verification_response(user, 'scratch', authenticator.validate_scratch_code(repository, user, code))
