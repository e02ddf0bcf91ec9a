class TutorError(Exception):
    """Base class for every error the course workspace raises."""


# ---------------------------------------------------------------------------
# Validation: rejected before any collaborator call
# ---------------------------------------------------------------------------


class ValidationError(TutorError):
    pass


class EmptyInput(ValidationError):
    pass


class DuplicateName(ValidationError):
    def __init__(self, name: str) -> None:
        super().__init__(f"A folder named '{name}' already exists.")
        self.name = name


class InvalidFolder(ValidationError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Folder '{name}' does not exist.")
        self.name = name


# ---------------------------------------------------------------------------
# Invariants: state is left unchanged
# ---------------------------------------------------------------------------


class InvariantViolation(TutorError):
    pass


class LastFolderError(InvariantViolation):
    def __init__(self) -> None:
        super().__init__(
            "You must have at least one folder. "
            "Create a new folder before deleting this one."
        )


class LastSessionError(InvariantViolation):
    def __init__(self) -> None:
        super().__init__("You must have at least one chat session.")


# ---------------------------------------------------------------------------
# Everything else
# ---------------------------------------------------------------------------


class NoMaterials(TutorError):
    def __init__(self) -> None:
        super().__init__("Please upload materials first.")


class NotFound(TutorError):
    pass


class SessionBusy(TutorError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} is still waiting for a reply.")
        self.session_id = session_id


class CollaboratorError(TutorError):
    """The AI backend failed; ``str(exc)`` is safe to show to the user."""

    def __init__(self, message: str, kind: str = "unknown") -> None:
        super().__init__(message)
        self.kind = kind
