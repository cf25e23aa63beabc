"""Domain exceptions raised by the application ledger and abuse control."""

from typing import Optional


class ApplicationLedgerError(Exception):
    """
    A ledger write was rejected by the database.

    `code` is `invalid_reference` when the job or candidate no longer exists
    and `conflict` when the (job, candidate) uniqueness could not be resolved.
    """

    INVALID_REFERENCE = "invalid_reference"
    CONFLICT = "conflict"

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return 409 if self.code == self.CONFLICT else 400


class CaptchaRejected(Exception):
    """The captcha gate refused the submission."""

    def __init__(self, reason: str, score: Optional[float] = None):
        self.reason = reason
        self.score = score
        super().__init__(f"Captcha rejected: {reason}")
