from fastapi import HTTPException, Request

from omnitutor.errors import (
    CollaboratorError,
    DuplicateName,
    InvariantViolation,
    NoMaterials,
    NotFound,
    SessionBusy,
    TutorError,
    ValidationError,
)
from omnitutor.services.courses import CourseCatalog
from omnitutor.services.storage import StorageService
from omnitutor.services.workspace import CourseWorkspace, WorkspaceRegistry

# Most specific first
_STATUS: list[tuple[type[TutorError], int]] = [
    (DuplicateName, 409),
    (ValidationError, 400),
    (InvariantViolation, 409),
    (NoMaterials, 400),
    (NotFound, 404),
    (SessionBusy, 409),
    (CollaboratorError, 502),
]


def status_for(exc: TutorError) -> int:
    for cls, status in _STATUS:
        if isinstance(exc, cls):
            return status
    return 500


def to_http(exc: TutorError) -> HTTPException:
    return HTTPException(status_code=status_for(exc), detail=str(exc))


def get_storage(request: Request) -> StorageService:
    return request.app.state.storage


def get_catalog(request: Request) -> CourseCatalog:
    return request.app.state.catalog


def get_registry(request: Request) -> WorkspaceRegistry:
    return request.app.state.workspaces


def get_workspace(course_id: str, request: Request) -> CourseWorkspace:
    try:
        return get_registry(request).get(course_id)
    except NotFound as exc:
        raise to_http(exc)
