"""Tests for SessionAdopter - credential -> Session."""

from datetime import datetime, timezone

import pytest

from auth.adopter import DEFAULT_DISPLAY_NAME, clean_avatar_url, normalize_user
from auth.exceptions import AdoptionError
from auth.security_logger import SecurityEvent
from auth.types import Credential, Session, User, UserSummary
from clients.user_center_client import MalformedResponseError


def _credential(token="T", **summary) -> Credential:
    summary.setdefault("id", 7)
    summary.setdefault("nickname", "Ann")
    return Credential(token=token, user_summary=UserSummary(**summary))


class TestNormalizeUser:

    def test_stringifies_id(self):
        user = normalize_user(UserSummary(id=7, nickname="Ann"))
        assert user.id == "7"
        assert user.display_name == "Ann"

    def test_defaults_for_missing_fields(self):
        user = normalize_user(UserSummary(id="u1"))
        assert user.display_name == DEFAULT_DISPLAY_NAME
        assert user.email == ""
        assert user.avatar_url is None

    def test_avatar_alias_and_cleanup(self):
        user = normalize_user(UserSummary(id=1, avatar=" `https://cdn/a.png` "))
        assert user.avatar_url == "https://cdn/a.png"

    def test_missing_id_raises(self):
        with pytest.raises(AdoptionError):
            normalize_user(UserSummary(nickname="Ann"))

    def test_blank_id_raises(self):
        with pytest.raises(AdoptionError):
            normalize_user(UserSummary(id="  "))

    def test_reuses_created_at_for_same_user(self):
        earlier = datetime(2024, 1, 1, tzinfo=timezone.utc)
        previous = User(id="7", display_name="Ann", created_at=earlier)

        user = normalize_user(UserSummary(id=7), previous=previous)

        assert user.created_at == earlier

    def test_other_user_gets_fresh_created_at(self):
        earlier = datetime(2024, 1, 1, tzinfo=timezone.utc)
        previous = User(id="8", display_name="Bob", created_at=earlier)

        user = normalize_user(UserSummary(id=7), previous=previous)

        assert user.created_at > earlier

    def test_clean_avatar_url_empty_is_none(self):
        assert clean_avatar_url("  ") is None
        assert clean_avatar_url(None) is None


class TestAdopt:

    def test_adopt_sets_session(self, adopter, store):
        session = adopter.adopt(_credential())

        assert store.get_state() == session
        assert session.token == "T"
        assert session.user.id == "7"
        assert session.user.display_name == "Ann"
        assert store.is_authenticated()

    def test_adopt_notifies_once(self, adopter, store):
        received = []
        store.subscribe(received.append)

        adopter.adopt(_credential())

        assert len(received) == 1
        assert isinstance(received[0], Session)

    def test_adopt_twice_stores_identical_session(self, adopter, store, storage):
        received = []
        store.subscribe(received.append)

        adopter.adopt(_credential())
        first = store.get_state().model_dump_json()
        first_persisted = storage.get("almond_user")
        adopter.adopt(_credential())

        assert len(received) == 2
        assert store.get_state().model_dump_json() == first
        assert storage.get("almond_user") == first_persisted
        assert received[0] == received[1]
        assert store.is_authenticated()

    def test_missing_id_leaves_prior_session(self, adopter, store):
        prior = adopter.adopt(_credential(token="OLD"))

        with pytest.raises(AdoptionError):
            adopter.adopt(Credential(token="NEW", user_summary=UserSummary(nickname="x")))

        assert store.get_state() == prior

    def test_missing_token_is_rejected(self, adopter, store):
        with pytest.raises(AdoptionError):
            adopter.adopt(_credential(token=""))
        assert store.get_state() is None

    def test_adoption_is_logged(self, adopter, security_logger):
        adopter.adopt(_credential())

        events = security_logger.get_recent_events(SecurityEvent.SESSION_ADOPTED)
        assert events[0]["user_id"] == "7"


class TestAdoptAuthResponse:
    """Password login / registration response shape."""

    def test_adopts_token_user_and_refresh_token(self, adopter):
        session = adopter.adopt_auth_response(
            {
                "token": "T",
                "refreshToken": "R",
                "userInfo": {"id": 3, "nickname": "Cai", "email": "c@x.y"},
            }
        )

        assert session.refresh_token == "R"
        assert session.user.email == "c@x.y"

    @pytest.mark.parametrize(
        "payload",
        [None, {}, {"token": "T"}, {"userInfo": {"id": 1}}, "not a dict"],
    )
    def test_malformed_payload_raises(self, adopter, store, payload):
        with pytest.raises(MalformedResponseError):
            adopter.adopt_auth_response(payload)
        assert store.get_state() is None
