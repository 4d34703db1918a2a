"""Engine exception taxonomy."""


class RunbookEngineError(Exception):
    """Base class for errors raised by the runbook engine."""


class SelectionError(RunbookEngineError):
    """Trigger input cannot be resolved to a runbook set.

    Raised before anything is dispatched.
    """


class RunbookNotFoundError(SelectionError):
    """Explicitly requested runbook does not exist for the caller."""

    def __init__(self, runbook_id: str):
        super().__init__(f"Runbook {runbook_id} not found")
        self.runbook_id = runbook_id


class StepFailedError(RunbookEngineError):
    """An action handler could not perform its step.

    Always captured by the step executor into a failed step result.
    """


class PersistenceError(RunbookEngineError):
    """An execution record could not be durably written."""


class ConcurrentUpdateError(RunbookEngineError):
    """An optimistic update kept losing to concurrent writers."""


class StorageUnavailableError(RunbookEngineError):
    """Runbooks could not be read while selecting; nothing was dispatched."""
