"""Error taxonomy shared by the services and the HTTP layer.

Every error a caller can see derives from :class:`LemmaError` and carries the
HTTP status it maps to.  The API renders ``{"error": message}`` for all of
them except the ones flagged ``empty_body``.
"""

from __future__ import annotations

GENERIC_MESSAGE = "something went wrong. Try again"


class LemmaError(Exception):
    status_code: int = 500
    empty_body: bool = False
    default_message: str = GENERIC_MESSAGE

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# 400: caller input
# ---------------------------------------------------------------------------

class ValidationError(LemmaError):
    status_code = 400
    default_message = "invalid request"


class PayloadInvalid(ValidationError):
    default_message = "data payload must be valid json object"


class SearchMetadataInvalid(ValidationError):
    pass


class BotCheckFailed(ValidationError):
    default_message = "recaptcha invalid"


class OwnerInvalid(ValidationError):
    default_message = "owner is invalid"


class ParentReferenceInvalid(ValidationError):
    default_message = "invalid parent ref"


class TooManyParents(ValidationError):
    pass


class DepthInvalid(ValidationError):
    default_message = "depth query param is malformed"


class AccountInvalid(ValidationError):
    pass


# ---------------------------------------------------------------------------
# Not found.  Scope mismatches deliberately share these messages.
# ---------------------------------------------------------------------------

class NotFoundError(LemmaError):
    status_code = 404
    default_message = "not found"


class ParentNotFound(NotFoundError):
    status_code = 400
    default_message = "provided parent ref does not exist"


class RefNotFound(NotFoundError):
    status_code = 400
    default_message = "can't find ref"


class AccountNotFound(NotFoundError):
    empty_body = True


# ---------------------------------------------------------------------------
# 401: identity
# ---------------------------------------------------------------------------

class AuthorizationError(LemmaError):
    status_code = 401
    default_message = "owner requires login"


class LoginRequired(AuthorizationError):
    pass


class OwnershipUnauthorized(AuthorizationError):
    pass


class LoginFailed(AuthorizationError):
    empty_body = True


class AccountNotValidated(AuthorizationError):
    default_message = "account requires email validation"


# ---------------------------------------------------------------------------
# Store access
# ---------------------------------------------------------------------------

class StoreTimeout(LemmaError):
    status_code = 408
    empty_body = True
    default_message = "query timed out"


class RequestCancelled(LemmaError):
    status_code = 204
    empty_body = True
    default_message = "request aborted"


class InternalError(LemmaError):
    status_code = 500


class MalformedAddress(ValueError):
    """Raised by the address codec for strings it could never have produced."""
