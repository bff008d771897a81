import os
from dataclasses import dataclass

import boto3

from backend import CognitoDynamoBackend

TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    user_pool_id: str
    users_table: str
    tenant_users_table: str
    compensate_on_failure: bool = False

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ
        return cls(
            user_pool_id=env["COGNITO_USER_POOL_ID"],
            users_table=env["USERS_TABLE"],
            tenant_users_table=env["TENANT_USERS_TABLE"],
            compensate_on_failure=str(env.get("COMPENSATE_ON_FAILURE", "")).strip().lower() in TRUTHY,
        )


def build_backend(settings, session=None):
    """Construct the boto3 clients the backend talks to."""
    session = session or boto3.session.Session()
    dynamodb = session.resource("dynamodb")
    return CognitoDynamoBackend(
        cognito_client=session.client("cognito-idp"),
        users_table=dynamodb.Table(settings.users_table),
        tenant_users_table=dynamodb.Table(settings.tenant_users_table),
        user_pool_id=settings.user_pool_id,
    )


_settings = None
_backend = None


def get_settings():
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def get_backend():
    # built on first use so importing a handler never touches AWS
    global _backend
    if _backend is None:
        _backend = build_backend(get_settings())
    return _backend
