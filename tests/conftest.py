import pytest
from fastapi.testclient import TestClient

from canvas_auth.config import Settings
from canvas_auth.main import create_app

SECRET = "s3cr3t"
CLIENT_ID = "3MVG9test.client.id"
REDIRECT_URL = "https://app.example.com/canvas/callback"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        CLIENT_ID=CLIENT_ID,
        CLIENT_SECRET=SECRET,
        REDIRECT_URL=REDIRECT_URL,
        LOGIN_HOST_SUFFIXES=["salesforce.com", "force.com", "example.com"],
        AUDIT_DIR=tmp_path / "audit",
    )


@pytest.fixture
def client(settings):
    return TestClient(create_app(settings))


@pytest.fixture
def envelope():
    # trimmed-down shape of what the host posts
    return {
        "algorithm": "HMACSHA256",
        "issuedAt": 1234567890,
        "userId": "005000000000001AAA",
        "client": {
            "oauthToken": "00D000000000001!AQ0AQ.token",
            "instanceUrl": "https://na1.salesforce.com",
        },
        "context": {
            "user": {"userId": "005000000000001AAA", "userName": "ada@example.com"},
            "organization": {"organizationId": "00D000000000001AAA"},
        },
    }
