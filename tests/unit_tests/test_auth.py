from datetime import timedelta

import jwt
import pytest

from tests.consts import TEST_JWT_SECRET
from uploads_api.auth import CallerIdentity, create_access_token, decode_token
from uploads_api.config.settings import Settings


@pytest.fixture
def auth_settings(point_away_from_aws) -> Settings:
    return Settings(_env_file=None, JWT_SECRET=TEST_JWT_SECRET)


def test_token_round_trip(auth_settings):
    token = create_access_token(auth_settings, user_id=7, team_id=3, role="team", username="ana")

    assert decode_token(auth_settings, token) == CallerIdentity(user_id=7, team_id=3, role="team", username="ana")


def test_admin_token_without_team(auth_settings):
    identity = decode_token(
        auth_settings,
        create_access_token(auth_settings, user_id=1, team_id=None, role="admin"),
    )

    assert identity.is_admin
    assert identity.team_id is None
    assert identity.effective_team_id(default_team_id=5) == 5


def test_team_identity_keeps_its_team():
    identity = CallerIdentity(user_id=2, team_id=9, role="team")
    assert not identity.is_admin
    assert identity.effective_team_id(default_team_id=5) == 9


def test_expired_token_is_rejected(auth_settings):
    token = create_access_token(
        auth_settings, user_id=1, team_id=1, role="team", expires_in=timedelta(seconds=-1)
    )
    with pytest.raises(jwt.ExpiredSignatureError):
        decode_token(auth_settings, token)


def test_token_signed_with_other_secret_is_rejected(auth_settings, point_away_from_aws):
    other = Settings(_env_file=None, JWT_SECRET="someone-else")
    token = create_access_token(other, user_id=1, team_id=1, role="team")

    with pytest.raises(jwt.InvalidSignatureError):
        decode_token(auth_settings, token)


@pytest.mark.parametrize(
    "payload",
    [
        {"sub": "1", "team_id": 1, "role": "superuser"},
        {"sub": "1", "team_id": 1},
        {"team_id": 1, "role": "team"},
        {"sub": "not-a-number", "team_id": 1, "role": "team"},
        {"sub": "1", "team_id": "x", "role": "team"},
    ],
)
def test_malformed_claims_are_rejected(auth_settings, payload):
    token = jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")
    with pytest.raises(jwt.InvalidTokenError):
        decode_token(auth_settings, token)
