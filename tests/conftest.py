import pytest

from backend import BackendError, Identity


class FakeBackend:
    """In-memory stand-in for CognitoDynamoBackend that records every call."""

    def __init__(self, fail=None, fail_with=None, fail_deletes=()):
        self.calls = []
        self.identities = {}
        self.profiles = {}
        self.memberships = {}
        self.fail = fail
        self.fail_with = fail_with or BackendError("boom", "InternalError")
        self.fail_deletes = set(fail_deletes)
        self._next_id = 1

    def _maybe_fail(self, op):
        if self.fail == op:
            raise self.fail_with

    def create_identity(self, email, password, email_confirmed, metadata):
        self.calls.append("create_identity")
        self._maybe_fail("create_identity")
        if any(i.email == email for i in self.identities.values()):
            raise BackendError("An account with the given email already exists.", "UsernameExistsException")
        user_id = f"user-{self._next_id}"
        self._next_id += 1
        identity = Identity(
            user_id=user_id,
            username=email,
            email=email,
            user_metadata=dict(metadata),
            status="CONFIRMED" if email_confirmed else "UNCONFIRMED",
            created_at="2024-01-01T00:00:00+00:00",
        )
        self.identities[user_id] = identity
        return identity

    def insert_profile(self, user_id, email, name):
        self.calls.append("insert_profile")
        self._maybe_fail("insert_profile")
        self.profiles[user_id] = {"id": user_id, "email": email, "name": name}

    def insert_membership(self, tenant_id, user_id, role, is_active):
        self.calls.append("insert_membership")
        self._maybe_fail("insert_membership")
        self.memberships[(tenant_id, user_id)] = {
            "tenant_id": tenant_id,
            "user_id": user_id,
            "role": role,
            "is_active": is_active,
            "permissions": {},
        }

    def delete_identity(self, identity):
        self.calls.append("delete_identity")
        if "identity" in self.fail_deletes:
            raise BackendError("cannot delete user", "InternalErrorException")
        self.identities.pop(identity.user_id, None)

    def delete_identity_by_username(self, username):
        self.calls.append("delete_identity_by_username")
        if "identity" in self.fail_deletes:
            raise BackendError("cannot delete user", "InternalErrorException")
        for user_id, identity in list(self.identities.items()):
            if identity.username == username:
                del self.identities[user_id]

    def delete_profile(self, user_id):
        self.calls.append("delete_profile")
        if "profile" in self.fail_deletes:
            raise BackendError("cannot delete profile", "InternalServerError")
        self.profiles.pop(user_id, None)

    def delete_membership(self, tenant_id, user_id):
        self.calls.append("delete_membership")
        self.memberships.pop((tenant_id, user_id), None)

    def get_profile(self, user_id):
        return self.profiles.get(user_id)

    def get_membership(self, tenant_id, user_id):
        return self.memberships.get((tenant_id, user_id))


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def make_backend():
    return FakeBackend


@pytest.fixture(autouse=True)
def aws_env(monkeypatch):
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("COGNITO_USER_POOL_ID", "us-east-1_TestPool")
    monkeypatch.setenv("USERS_TABLE", "users")
    monkeypatch.setenv("TENANT_USERS_TABLE", "tenant_users")
