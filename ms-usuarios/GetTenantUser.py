import logging
import os

from backend import BackendError
from config import get_backend
from utils import response, tenant_id_from

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())


def lambda_handler(event, context, backend=None):
    tenant_id = tenant_id_from(event)
    if not tenant_id:
        return response(400, {"error": "tenant_id is required"})

    user_id = (event.get("pathParameters") or {}).get("user_id")
    if not user_id:
        return response(400, {"error": "user_id path param required"})

    try:
        backend = backend or get_backend()
        membership = backend.get_membership(tenant_id, user_id)
        if not membership:
            return response(404, {"error": "User not found in tenant"})
        profile = backend.get_profile(user_id)
    except BackendError as e:
        logger.error("Error reading tenant user %s/%s: %s", tenant_id, user_id, e.message)
        return response(500, {"error": e.message, "code": e.code})
    except Exception as e:
        logger.exception("Error reading tenant user %s/%s", tenant_id, user_id)
        return response(500, {"error": "Internal server error", "details": str(e)})

    if not profile:
        # membership without profile: the user was never fully provisioned
        logger.warning("Membership %s/%s has no profile", tenant_id, user_id)
        return response(404, {"error": "User profile not found"})

    return response(200, {
        "user_id": user_id,
        "tenant_id": tenant_id,
        "email": profile.get("email"),
        "name": profile.get("name"),
        "role": membership.get("role"),
        "is_active": membership.get("is_active"),
        "permissions": membership.get("permissions", {}),
        "joined_at": membership.get("joined_at"),
    })
