from typing import Optional


class ComposerError(Exception):
    """Base class for composition engine errors."""

    code = "composer_error"


class UserRecoverableError(ComposerError):
    code = "user_recoverable"


class NothingToSaveError(UserRecoverableError):
    code = "nothing_to_save"


class CommitInProgressError(UserRecoverableError):
    code = "commit_in_progress"


class CollaboratorFailure(ComposerError):
    """An external collaborator (catalog, renderer, uploader, persistence) failed."""

    code = "collaborator_failure"

    def __init__(self, stage: str, cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.stage = stage
        self.cause = cause
        detail = message or (str(cause) if cause else "failed")
        super().__init__(f"{stage}: {detail}")
