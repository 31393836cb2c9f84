"""Exception hierarchy for Doc-Agent.

Every error raised by the package derives from DocAgentError so callers
can catch the whole family with a single except clause. Undo failures
are typed so that "nothing to undo" and "not allowed to undo" stay
distinguishable.
"""

from __future__ import annotations


class DocAgentError(Exception):
    """Base class for all Doc-Agent errors."""

    pass


class ConfigError(DocAgentError):
    """Configuration could not be loaded or validated."""

    pass


class StorageError(DocAgentError):
    """Persistence layer failure."""

    pass


class StorageCorruptedError(StorageError):
    """Stored data could not be decoded."""

    pass


class ScopeNotFoundError(DocAgentError):
    """Scope does not resolve against the document snapshot."""

    def __init__(self, scope: object) -> None:
        super().__init__(f"Scope not found in document: {scope}")
        self.scope = scope


class PlanNotFoundError(DocAgentError):
    """No plan is registered under the requested id."""

    def __init__(self, plan_id: str) -> None:
        super().__init__(f"Plan not found: {plan_id}")
        self.plan_id = plan_id


class UnknownStepError(DocAgentError):
    """Accepted step ids reference steps that are not part of the plan."""

    def __init__(self, plan_id: str, step_ids: list[str]) -> None:
        joined = ", ".join(step_ids)
        super().__init__(f"Unknown step(s) for plan {plan_id}: {joined}")
        self.plan_id = plan_id
        self.step_ids = step_ids


class StepExecutionError(DocAgentError):
    """A single plan step failed to apply.

    Attributes:
        retryable: Whether resubmitting the step without document
            changes could succeed.
    """

    def __init__(self, message: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class StepPreconditionError(DocAgentError):
    """A step cannot be applied to the given document state."""

    def __init__(self, message: str, requirement: str | None = None) -> None:
        super().__init__(message)
        self.requirement = requirement


class DiffConflictError(DocAgentError):
    """A diff does not match the current document content."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Conflict at {path}: {reason}")
        self.path = path
        self.reason = reason


class DiffInversionError(DocAgentError):
    """A diff item cannot be inverted."""

    pass


class RecipeNotFoundError(DocAgentError):
    """No recipe is stored under the requested id."""

    def __init__(self, recipe_id: str) -> None:
        super().__init__(f"Recipe not found: {recipe_id}")
        self.recipe_id = recipe_id


class UndoError(DocAgentError):
    """Base class for undo failures."""

    pass


class OperationNotFoundError(UndoError):
    """The operation id is not in the history."""

    def __init__(self, operation_id: str) -> None:
        super().__init__(f"Operation not found: {operation_id}")
        self.operation_id = operation_id


class NotReversibleError(UndoError):
    """The operation was recorded as non-reversible."""

    def __init__(self, operation_id: str) -> None:
        super().__init__(f"Operation is not reversible: {operation_id}")
        self.operation_id = operation_id


class AlreadyRevertedError(UndoError):
    """The operation has already been reverted."""

    def __init__(self, operation_id: str) -> None:
        super().__init__(f"Operation already reverted: {operation_id}")
        self.operation_id = operation_id


class UndoFailedError(UndoError):
    """Inverted diffs could not be applied; nothing was changed."""

    pass
