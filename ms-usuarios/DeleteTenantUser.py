import logging
import os

from backend import BackendError
from config import get_backend
from utils import response, tenant_id_from

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())


def lambda_handler(event, context, backend=None):
    """
    DELETE /tenants/{tenant_id}/users/{user_id}
    Removes the membership. ?purge=true also removes the profile and the Cognito user.
    """
    tenant_id = tenant_id_from(event)
    if not tenant_id:
        return response(400, {"error": "tenant_id is required"})

    user_id = (event.get("pathParameters") or {}).get("user_id")
    if not user_id:
        return response(400, {"error": "user_id path param required"})

    purge = str((event.get("queryStringParameters") or {}).get("purge", "")).lower() == "true"

    try:
        backend = backend or get_backend()
        if not backend.get_membership(tenant_id, user_id):
            return response(404, {"error": "User not found in tenant"})

        if purge:
            # identity first: the profile holds the email needed to find it, and the
            # membership keeps the request retryable until everything else is gone
            profile = backend.get_profile(user_id)
            if profile:
                _delete_identity(backend, profile["email"], user_id)
                backend.delete_profile(user_id)
            logger.info("Purged profile and identity of user %s", user_id)

        backend.delete_membership(tenant_id, user_id)
        logger.info("Removed user %s from tenant %s", user_id, tenant_id)

    except BackendError as e:
        logger.error("Error deleting tenant user %s/%s: %s", tenant_id, user_id, e.message)
        return response(500, {"error": e.message, "code": e.code})
    except Exception as e:
        logger.exception("Error deleting tenant user %s/%s", tenant_id, user_id)
        return response(500, {"error": "Internal server error", "details": str(e)})

    return response(204)


def _delete_identity(backend, username, user_id):
    # Cognito accepts the email as username for pools that sign in by email
    try:
        backend.delete_identity_by_username(username)
    except BackendError as e:
        if e.code != "UserNotFoundException":
            raise
        logger.info("Identity of user %s was already gone", user_id)
