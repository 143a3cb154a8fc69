from flask import Blueprint, jsonify
from flask_jwt_extended import (
    JWTManager, create_access_token, get_jwt, get_jwt_identity, jwt_required
)

jwt = JWTManager()
auth_bp = Blueprint("auth", __name__)

# Sign-in itself happens at the OAuth provider. Once its callback has
# confirmed who the user is, the session handed to the client is one of
# these tokens: identity is the email, profile rides along as claims.


def issue_session_token(email: str, name=None, image=None) -> str:
    return create_access_token(
        identity=email,
        additional_claims={"name": name, "image": image},
    )


def _not_authenticated(reason: str):
    return jsonify({"error": "Not authenticated", "message": reason}), 401


@jwt.unauthorized_loader
def missing_token(reason):
    return _not_authenticated(reason)


@jwt.invalid_token_loader
def invalid_token(reason):
    return _not_authenticated(reason)


@jwt.expired_token_loader
def expired_token(jwt_header, jwt_payload):
    return _not_authenticated("Token has expired")


@jwt.revoked_token_loader
def revoked_token(jwt_header, jwt_payload):
    return _not_authenticated("Token has been revoked")


@auth_bp.get("/session")
@jwt_required()
def current_session():
    claims = get_jwt()
    return jsonify({
        "user": {
            "email": get_jwt_identity(),
            "name": claims.get("name"),
            "image": claims.get("image"),
        }
    }), 200
