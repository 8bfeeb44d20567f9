# pricesync/errors.py

"""Exception taxonomy shared by adapters, stores and the orchestrator."""


class PriceSyncError(Exception):
    """Base class for all pricesync errors."""


class ConfigurationError(PriceSyncError):
    """Fatal setup problem detected before any external call is made.

    Missing credentials, an unknown competitor id, or a store that
    cannot guarantee safe bulk upserts when bulk upserts are required.
    """


class AdapterError(PriceSyncError):
    """Unrecoverable failure of one competitor source.

    Raising this from an adapter fails that competitor's sub-run; other
    competitors are unaffected.
    """


class QueryKeyError(PriceSyncError):
    """A single query key could not be fetched and was skipped."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{key}: {message}")
        self.key = key


class RunCancelled(AdapterError):
    """The run was cancelled while this competitor was still fetching."""


class InvalidTransition(PriceSyncError):
    """An execution status change that the state machine does not allow."""


class BatchWriteError(PriceSyncError):
    """A persistence batch failed after retries were exhausted."""

    def __init__(
        self,
        execution_id: int,
        competitor: str,
        batch_index: int,
        cause: Exception,
    ) -> None:
        super().__init__(
            f"execution={execution_id} competitor={competitor} "
            f"batch={batch_index}: {cause}"
        )
        self.execution_id = execution_id
        self.competitor = competitor
        self.batch_index = batch_index
        self.cause = cause
