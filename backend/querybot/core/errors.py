class QueryBotError(Exception):
    """
    Base class for failures of a query attempt.

    `reason` is a stable machine-readable code the HTTP layer returns next to
    the message, so clients can tell policy violations from execution errors.
    """

    reason: str = "query_error"
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"reason": self.reason, "message": self.message}


class NoDatasetAvailable(QueryBotError):
    reason = "no_dataset"
    status_code = 404


class UnauthorizedTable(QueryBotError):
    reason = "unauthorized_table"
    status_code = 403


class PolicyViolation(QueryBotError):
    reason = "policy_violation"
    status_code = 400


class ExecutionFailed(QueryBotError):
    reason = "execution_failed"
    status_code = 502


class GenerationDegraded(QueryBotError):
    # Raised by generators when no usable summary came back; the orchestrator
    # turns it into a successful result without a summary.
    reason = "generation_degraded"
    status_code = 200
