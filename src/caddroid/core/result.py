"""Supervised command results and exit-code conventions."""

from pydantic import BaseModel, ConfigDict

TIMEOUT_EXIT_CODE = 124
# Package managers use 100 for "nothing to do, already satisfied"
ALREADY_SATISFIED_EXIT_CODE = 100
UNKNOWN_FAILURE_EXIT_CODE = 1


class InvocationError(ValueError):
    """Raised when a supervised call is made without something to run."""


class SupervisedResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def stderr_tail(self, lines: int = 3) -> str:
        return "\n".join(self.stderr.splitlines()[-lines:])


def normalize_exit_code(
    returncode: int | None, success_codes: frozenset[int] | set[int]
) -> int:
    """Map a raw return code to the value reported to callers.

    Missing codes count as an unknown failure, signal deaths follow the
    shell's ``128 + signal`` convention, and accepted codes become 0.
    """
    if returncode is None:
        return UNKNOWN_FAILURE_EXIT_CODE
    if returncode < 0:
        return 128 - returncode
    if returncode in success_codes:
        return 0
    return returncode
