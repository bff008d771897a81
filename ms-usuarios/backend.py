"""
AWS side of tenant user provisioning.

Identities live in a Cognito user pool, profiles in USERS_TABLE (key: id) and
memberships in TENANT_USERS_TABLE (key: tenant_id + user_id).
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

# Cognito standard attributes; anything else in the metadata goes under custom:
STANDARD_ATTRIBUTES = {"name", "given_name", "family_name", "locale", "zoneinfo", "picture"}


class BackendError(Exception):
    """A remote call was rejected by Cognito or DynamoDB."""

    # set by create_identity when a failed identity could not be removed again
    identity_orphaned = False

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        self.code = code

    @classmethod
    def from_client_error(cls, error):
        err = error.response.get("Error", {})
        return cls(err.get("Message") or str(error), err.get("Code"))


@dataclass
class Identity:
    user_id: str
    username: str
    email: str
    user_metadata: dict = field(default_factory=dict)
    status: str = ""
    created_at: str = ""

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "username": self.username,
            "email": self.email,
            "user_metadata": dict(self.user_metadata),
            "status": self.status,
            "created_at": self.created_at,
        }


def _now():
    return datetime.now(timezone.utc).isoformat()


def _attribute(user, name):
    for attr in user.get("Attributes", []):
        if attr["Name"] == name:
            return attr["Value"]
    return None


class CognitoDynamoBackend:

    def __init__(self, cognito_client, users_table, tenant_users_table, user_pool_id):
        self.cognito = cognito_client
        self.users_table = users_table
        self.tenant_users_table = tenant_users_table
        self.user_pool_id = user_pool_id

    # -------- identity ----------
    def create_identity(self, email, password, email_confirmed, metadata):
        attributes = [
            {"Name": "email", "Value": email},
            {"Name": "email_verified", "Value": "true" if email_confirmed else "false"},
        ]
        for key, value in metadata.items():
            name = key if key in STANDARD_ATTRIBUTES else f"custom:{key}"
            attributes.append({"Name": name, "Value": str(value)})

        try:
            resp = self.cognito.admin_create_user(
                UserPoolId=self.user_pool_id,
                Username=email,
                UserAttributes=attributes,
                TemporaryPassword=password,
                MessageAction="SUPPRESS",
            )
        except ClientError as e:
            raise BackendError.from_client_error(e) from e

        user = resp["User"]
        username = user["Username"]

        # from here on the user exists; any failure removes it again
        try:
            user_id = _attribute(user, "sub")
            if not user_id:
                raise BackendError("Cognito did not return a sub for the new user", "MissingSub")

            # a permanent password leaves the user CONFIRMED instead of FORCE_CHANGE_PASSWORD
            self.cognito.admin_set_user_password(
                UserPoolId=self.user_pool_id,
                Username=username,
                Password=password,
                Permanent=True,
            )
        except Exception as e:
            error = BackendError.from_client_error(e) if isinstance(e, ClientError) else e
            error.identity_orphaned = not self._discard_new_user(username)
            if error is e:
                raise
            raise error from e

        created = user.get("UserCreateDate")
        return Identity(
            user_id=user_id,
            username=username,
            email=email,
            user_metadata=dict(metadata),
            status="CONFIRMED",
            created_at=created.isoformat() if isinstance(created, datetime) else _now(),
        )

    def _discard_new_user(self, username):
        """Delete a half-created user; False when it is still there."""
        logger.warning("Identity setup failed, removing the new Cognito user")
        try:
            self.delete_identity_by_username(username)
        except Exception:
            logger.exception("Could not remove the half-created Cognito user")
            return False
        return True

    def delete_identity(self, identity):
        self.delete_identity_by_username(identity.username)

    def delete_identity_by_username(self, username):
        try:
            self.cognito.admin_delete_user(UserPoolId=self.user_pool_id, Username=username)
        except ClientError as e:
            raise BackendError.from_client_error(e) from e

    # -------- profile ----------
    def insert_profile(self, user_id, email, name):
        item = {"id": user_id, "email": email, "name": name, "created_at": _now()}
        self._put(self.users_table, item, "attribute_not_exists(id)")

    def get_profile(self, user_id):
        return self._get(self.users_table, {"id": user_id})

    def delete_profile(self, user_id):
        self._delete(self.users_table, {"id": user_id})

    # -------- membership ----------
    def insert_membership(self, tenant_id, user_id, role, is_active):
        now = _now()
        item = {
            "tenant_id": tenant_id,
            "user_id": user_id,
            "role": role,
            "permissions": {},
            "is_active": is_active,
            "joined_at": now,
            "created_at": now,
        }
        self._put(self.tenant_users_table, item, "attribute_not_exists(user_id)")

    def get_membership(self, tenant_id, user_id):
        return self._get(self.tenant_users_table, {"tenant_id": tenant_id, "user_id": user_id})

    def delete_membership(self, tenant_id, user_id):
        self._delete(self.tenant_users_table, {"tenant_id": tenant_id, "user_id": user_id})

    # -------- DynamoDB helpers ----------
    def _put(self, table, item, condition):
        try:
            table.put_item(Item=item, ConditionExpression=condition)
        except ClientError as e:
            raise BackendError.from_client_error(e) from e

    def _get(self, table, key):
        try:
            return table.get_item(Key=key).get("Item")
        except ClientError as e:
            raise BackendError.from_client_error(e) from e

    def _delete(self, table, key):
        try:
            table.delete_item(Key=key)
        except ClientError as e:
            raise BackendError.from_client_error(e) from e
