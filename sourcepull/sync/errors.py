"""Error taxonomy for pull operations."""

from enum import Enum
from typing import Any

from sourcepull.models.members import ConflictEntry
from sourcepull.models.results import RetrievalResult


class PullErrorKind(str, Enum):
    """Kinds of pull failures."""

    SOURCE_CONFLICT = "SourceConflict"
    RETRIEVE_FAILED = "RetrieveFailed"
    UNSUPPORTED_ENVIRONMENT = "UnsupportedEnvironment"
    CLEANUP_FAILED = "CleanupFailed"


class PullError(Exception):
    """Base class for pull failures, tagged with a kind."""

    kind: PullErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        # Set by the orchestrator when packages were applied before the failure
        self.pull_result: Any = None

    @property
    def name(self) -> str:
        return self.kind.value


class SourceConflictError(PullError):
    """Raised when members changed both locally and remotely."""

    kind = PullErrorKind.SOURCE_CONFLICT

    def __init__(self, conflicts: list[ConflictEntry]):
        super().__init__(
            f"Conflicts found during sync down: "
            f"{', '.join(conflict.member for conflict in conflicts)}"
        )
        self.conflicts = list(conflicts)


class UnsupportedEnvironmentError(PullError):
    """Raised when the environment does not support source tracking."""

    kind = PullErrorKind.UNSUPPORTED_ENVIRONMENT


class RetrieveFailedError(PullError):
    """Raised when retrieving or applying a package failed."""

    kind = PullErrorKind.RETRIEVE_FAILED

    def __init__(
        self,
        message: str,
        package_name: str,
        status: str | None = None,
        messages: list[dict[str, Any]] | None = None,
        stage: str = "retrieve",
    ):
        super().__init__(message)
        self.package_name = package_name
        self.status = status
        self.messages = list(messages or [])
        self.stage = stage

    @classmethod
    def from_result(
        cls, package_name: str, result: RetrievalResult | None, cause: Exception | None = None
    ) -> "RetrieveFailedError":
        """Build the error from a failed (or missing) retrieval result."""
        if result is None:
            detail = str(cause) if cause is not None else "no result returned"
            return cls(
                f"Retrieve failed for package {package_name}: {detail}",
                package_name=package_name,
            )

        status = result.status.value if isinstance(result.status, Enum) else str(result.status)
        return cls(
            get_retrieve_failure_message(package_name, result),
            package_name=package_name,
            status=status,
            messages=result.messages,
        )


def get_retrieve_failure_message(package_name: str, result: RetrievalResult) -> str:
    """Assemble a readable failure message from a retrieval result."""
    status = result.status.value if isinstance(result.status, Enum) else str(result.status)
    message = f"Retrieve failed for package {package_name} with status {status}"

    problems = []
    for entry in result.messages or []:
        problem = entry.get("problem") or entry.get("message") or ""
        file_name = entry.get("fileName") or entry.get("file_name")
        problems.append(f"{file_name}: {problem}" if file_name else str(problem))

    if problems:
        message += ": " + "; ".join(problems)
    elif result.file_properties is None:
        message += ": no file properties returned"

    return message
