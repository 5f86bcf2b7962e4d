"""
Error taxonomy for the payee mapping and duplicate detection engines.

Fatal errors (invariant violations, bad input) abort the whole operation.
Oracle and AI judgment failures are recovered where they happen and folded
into the result stream as failure-tagged entries.
"""


class MeridianError(Exception):
    """Base class for domain-level errors."""
    status_code: int = 400
    error_code: str = "MERIDIAN_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InputValidationError(MeridianError):
    """Empty or malformed input rejected before any work starts."""
    status_code = 422
    error_code = "INVALID_INPUT"


class StructuralInvariantViolation(MeridianError):
    """A row-count or index invariant failed. Never patched silently."""
    status_code = 500
    error_code = "INVARIANT_VIOLATION"

    def __init__(self, invariant: str, expected=None, actual=None, message: str | None = None):
        self.invariant = invariant
        self.expected = expected
        self.actual = actual
        if message is None:
            message = f"{invariant}: expected {expected}, got {actual}"
        super().__init__(
            message,
            details={"invariant": invariant, "expected": expected, "actual": actual},
        )


class OracleCallFailure(MeridianError):
    """A classification oracle call failed for a name or a whole chunk."""
    status_code = 502
    error_code = "ORACLE_FAILURE"


class OracleTimeout(OracleCallFailure):
    """An oracle call exceeded its deadline."""
    error_code = "ORACLE_TIMEOUT"


class AIJudgmentFailure(MeridianError):
    """The AI duplicate judge could not produce a verdict."""
    status_code = 502
    error_code = "AI_JUDGMENT_FAILURE"


class OperationCancelled(MeridianError):
    """The caller cancelled an in-flight operation."""
    status_code = 409
    error_code = "CANCELLED"


class OracleUnavailable(MeridianError):
    """No classification oracle is configured (e.g. missing API key)."""
    status_code = 503
    error_code = "ORACLE_UNAVAILABLE"
