"""
Tenant user provisioning workflow.

A new user needs three records, created strictly in this order:

    identity (Cognito)  ->  profile (USERS_TABLE)  ->  membership (TENANT_USERS_TABLE)

Each step needs the user_id produced by the identity step. The first failure
stops the workflow and is raised as a ProvisionError subclass that says which
step failed and which records were left behind (``orphans``). Nothing is
retried. With ``compensate=True`` the records created before the failing step
are deleted again, newest first.
"""
import logging
import re
from dataclasses import dataclass

from backend import BackendError, Identity

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# ---------------------------
# Errors
# ---------------------------
class ProvisionError(Exception):
    kind = "ProvisionError"
    status_code = 500
    step = None

    def __init__(self, message, cause=None, orphans=(), step=None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.orphans = list(orphans)
        if step is not None:
            self.step = step

    def to_dict(self):
        body = {"error": self.message, "code": self.kind}
        if self.step:
            body["step"] = self.step
        if self.orphans:
            body["orphans"] = self.orphans
        return body


class InvalidMethod(ProvisionError):
    kind = "InvalidMethod"
    status_code = 405


class InvalidRequest(ProvisionError):
    kind = "InvalidRequest"
    status_code = 400


class IdentityCreationFailed(ProvisionError):
    kind = "IdentityCreationFailed"
    step = "identity"

    @property
    def status_code(self):
        code = getattr(self.cause, "code", None)
        if code == "UsernameExistsException":
            return 409
        if code in ("InvalidPasswordException", "InvalidParameterException"):
            return 400
        return 500


class ProfileCreationFailed(ProvisionError):
    kind = "ProfileCreationFailed"
    step = "profile"


class MembershipCreationFailed(ProvisionError):
    kind = "MembershipCreationFailed"
    step = "membership"


class UnexpectedFailure(ProvisionError):
    kind = "UnexpectedFailure"


# ---------------------------
# Request / result
# ---------------------------
@dataclass(frozen=True)
class ProvisionRequest:
    email: str
    password: str
    name: str
    tenant_id: str

    def __post_init__(self):
        for field_name in ("email", "password", "name", "tenant_id"):
            value = getattr(self, field_name)
            if not isinstance(value, str) or not value.strip():
                raise InvalidRequest(f"{field_name} is required")
        if not EMAIL_RE.match(self.email):
            raise InvalidRequest("email is not a valid email address")

    @classmethod
    def from_body(cls, body):
        """Build a request from the JSON body sent by the client (tenantId in camelCase)."""
        email = body.get("email")
        if isinstance(email, str):
            email = email.strip()
        return cls(
            email=email,
            password=body.get("password"),
            name=body.get("name"),
            tenant_id=body.get("tenantId") or body.get("tenant_id"),
        )


@dataclass(frozen=True)
class ProvisionedUser:
    identity: Identity
    tenant_id: str
    role: str = ADMIN_ROLE

    def to_dict(self):
        user = self.identity.to_dict()
        user["tenant_id"] = self.tenant_id
        user["role"] = self.role
        return user


# ---------------------------
# Workflow
# ---------------------------
class TenantUserProvisioner:

    def __init__(self, backend, compensate=False):
        self.backend = backend
        self.compensate = compensate

    def provision(self, request):
        logger.info("Provisioning a new user in tenant %s", request.tenant_id)

        # 1) identity
        try:
            identity = self.backend.create_identity(
                request.email,
                request.password,
                email_confirmed=True,
                metadata={"name": request.name, "tenant_id": request.tenant_id},
            )
        except BackendError as e:
            logger.error("Identity creation failed in tenant %s: %s", request.tenant_id, e.message)
            raise IdentityCreationFailed(
                f"Error creating user: {e.message}", cause=e, orphans=self._identity_orphans(e, request)
            ) from e
        except Exception as e:
            logger.exception("Unexpected error creating identity in tenant %s", request.tenant_id)
            raise UnexpectedFailure(
                f"Error creating user: {e}", cause=e, orphans=self._identity_orphans(e, request), step="identity"
            ) from e

        user_id = identity.user_id
        logger.info("Identity %s created in tenant %s", user_id, request.tenant_id)

        # 2) profile
        try:
            self.backend.insert_profile(user_id, request.email, request.name)
        except Exception as e:
            self._fail(ProfileCreationFailed, "profile", e, identity, created=["identity"])
        logger.info("Profile created for %s", user_id)

        # 3) membership
        try:
            self.backend.insert_membership(request.tenant_id, user_id, role=ADMIN_ROLE, is_active=True)
        except Exception as e:
            self._fail(MembershipCreationFailed, "membership", e, identity, created=["identity", "profile"])
        logger.info("User %s joined tenant %s as %s", user_id, request.tenant_id, ADMIN_ROLE)

        return ProvisionedUser(identity=identity, tenant_id=request.tenant_id, role=ADMIN_ROLE)

    def _identity_orphans(self, error, request):
        # the backend could not remove a user it had already created
        if getattr(error, "identity_orphaned", False):
            logger.warning("A half-created identity was left behind in tenant %s", request.tenant_id)
            return ["identity"]
        return []

    def _fail(self, error_cls, step, error, identity, created):
        if isinstance(error, BackendError):
            logger.error("%s step failed for %s: %s", step, identity.user_id, error.message)
            message = f"Error creating {step}: {error.message}"
        else:
            logger.exception("Unexpected error in %s step for %s", step, identity.user_id)
            error_cls = UnexpectedFailure
            message = f"Error creating {step}: {error}"

        orphans = self._compensate(identity, created) if self.compensate else list(created)
        if orphans:
            logger.warning("User %s left orphaned records: %s", identity.user_id, ", ".join(orphans))
        raise error_cls(message, cause=error, orphans=orphans, step=step) from error

    def _compensate(self, identity, created):
        """Undo the created records newest first; returns what could not be removed."""
        undo = {
            "profile": lambda: self.backend.delete_profile(identity.user_id),
            "identity": lambda: self.backend.delete_identity(identity),
        }
        remaining = []
        for record in reversed(created):
            try:
                undo[record]()
                logger.info("Compensation removed %s for %s", record, identity.user_id)
            except Exception:
                logger.exception("Compensation could not remove %s for %s", record, identity.user_id)
                remaining.append(record)
        return list(reversed(remaining))
