import logging
import os

from config import get_backend, get_settings
from provisioner import (
    InvalidMethod,
    InvalidRequest,
    ProvisionError,
    ProvisionRequest,
    TenantUserProvisioner,
    UnexpectedFailure,
)
from utils import http_method, parse_body, response

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())


def default_provisioner():
    return TenantUserProvisioner(get_backend(), compensate=get_settings().compensate_on_failure)


def lambda_handler(event, context, provisioner=None):
    """POST /tenant-users: create a Cognito user, its profile and its admin membership in a tenant."""
    try:
        # -------- 1) only POST ----------
        if http_method(event) != "POST":
            raise InvalidMethod("Method not allowed")

        # -------- 2) body ----------
        try:
            body = parse_body(event)
        except ValueError as e:
            raise InvalidRequest(str(e)) from e
        request = ProvisionRequest.from_body(body)

        # -------- 3) identity -> profile -> membership ----------
        provisioner = provisioner or default_provisioner()
        user = provisioner.provision(request)

    except ProvisionError as e:
        if e.status_code >= 500:
            logger.error("Error creating tenant user: %s", e.message)
        return response(e.status_code, e.to_dict())
    except Exception as e:
        logger.exception("Error creating tenant user")
        return response(500, UnexpectedFailure(f"Error creating user: {e}", cause=e).to_dict())

    return response(200, {"success": True, "user": user.to_dict()})
