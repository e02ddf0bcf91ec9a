from fastapi import APIRouter, Depends
from pydantic import BaseModel

from omnitutor.routes.deps import get_catalog, get_registry
from omnitutor.services.courses import CourseCatalog
from omnitutor.services.workspace import WorkspaceRegistry

router = APIRouter(prefix="/api", tags=["courses"])


# ------------------------------------------------------------------
# Request bodies
# ------------------------------------------------------------------


class CourseBody(BaseModel):
    title: str
    description: str = ""


# ------------------------------------------------------------------
# Course endpoints
# ------------------------------------------------------------------


@router.get("/courses")
async def list_courses(catalog: CourseCatalog = Depends(get_catalog)) -> list[dict]:
    return [c.to_dict() for c in catalog.list()]


@router.post("/courses")
async def create_course(body: CourseBody, catalog: CourseCatalog = Depends(get_catalog)) -> dict:
    return catalog.create(body.title, body.description).to_dict()


@router.get("/courses/{course_id}")
async def get_course(course_id: str, catalog: CourseCatalog = Depends(get_catalog)) -> dict:
    return catalog.get(course_id).to_dict()


@router.put("/courses/{course_id}")
async def edit_course(
    course_id: str, body: CourseBody, catalog: CourseCatalog = Depends(get_catalog)
) -> dict:
    return catalog.edit(course_id, body.title, body.description).to_dict()


@router.delete("/courses/{course_id}")
async def delete_course(
    course_id: str,
    catalog: CourseCatalog = Depends(get_catalog),
    registry: WorkspaceRegistry = Depends(get_registry),
) -> dict:
    """Delete a course together with its materials, sessions, folders and synthesis."""
    catalog.delete(course_id)
    registry.forget(course_id)
    return {"course_id": course_id, "status": "deleted"}
