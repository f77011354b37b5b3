class StoreError(Exception):
    """
    Typed failure returned by every store operation.
    `code` is stable and is what the HTTP layer maps to a status code.
    """
    code = "STORE_ERROR"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, **self.details}


class NotFound(StoreError):
    code = "NOT_FOUND"


class InvalidState(StoreError):
    code = "INVALID_STATE"


class ValidationFailed(StoreError):
    code = "VALIDATION"


class InsufficientBalance(StoreError):
    code = "INSUFFICIENT_BALANCE"


class Unauthorized(StoreError):
    code = "UNAUTHORIZED"


class StoreFailure(StoreError):
    code = "INTERNAL"


HTTP_STATUS_BY_CODE = {
    NotFound.code: 404,
    InvalidState.code: 409,
    ValidationFailed.code: 400,
    InsufficientBalance.code: 409,
    Unauthorized.code: 403,
    StoreFailure.code: 500,
}
