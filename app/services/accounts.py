from __future__ import annotations

from app.errors import AuthError, ValidationError
from app.extensions import db
from app.models import ApiToken, User, utcnow

INVALID_EMAIL = "invalid_email"
MISSING_PASSWORD = "missing_password"


def normalize_email(raw: str | None) -> str:
    email = (raw or "").strip().lower()
    local, _, domain = email.partition("@")
    if not local or not domain or any(char.isspace() for char in email):
        raise ValidationError(INVALID_EMAIL, "Please enter a valid email address.")
    return email


def sign_in_or_register(raw_email: str | None, password: str | None) -> User:
    """Return the account for ``raw_email``, creating it on first use.

    An existing account only opens with its own password.
    """
    email = normalize_email(raw_email)
    if not password:
        raise ValidationError(MISSING_PASSWORD, "Please enter your password.")

    user = User.query.filter_by(email=email).first()
    if not user:
        user = User(email=email)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    if not user.check_password(password):
        raise AuthError("Invalid email or password.")
    return user


def issue_api_token(user: User, name: str) -> str:
    token, token_hash = ApiToken.issue_token()
    db.session.add(ApiToken(user_id=user.id, name=name, token_hash=token_hash))
    db.session.commit()
    return token


def revoke_api_token(token_row: ApiToken) -> None:
    token_row.revoked_at = utcnow()
    db.session.commit()
