import pytest

from app import create_app
from app.config import TestConfig
from app.extensions import db

DEFAULT_PASSWORD = "correct horse battery"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def sign_in(client):
    def _sign_in(email: str, password: str = DEFAULT_PASSWORD):
        response = client.post(
            "/auth",
            data={"email": email, "password": password},
            follow_redirects=False,
        )
        assert response.status_code == 302
        return response

    return _sign_in


@pytest.fixture
def issue_token(client):
    def _issue_token(email: str, password: str = DEFAULT_PASSWORD) -> str:
        response = client.post(
            "/api/v1/auth/token", json={"email": email, "password": password}
        )
        assert response.status_code == 200
        return response.get_json()["token"]

    return _issue_token
