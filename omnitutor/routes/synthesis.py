from fastapi import APIRouter, Depends

from omnitutor.routes.deps import get_workspace
from omnitutor.services.workspace import CourseWorkspace

router = APIRouter(prefix="/api/courses/{course_id}", tags=["synthesis"])


@router.get("/synthesis")
async def get_synthesis(ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    return {"course_id": ws.course_id, "synthesis": ws.synthesis.get()}


@router.post("/synthesis")
async def generate_synthesis(ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    """Rebuild the course overview from every stored material."""
    text = await ws.generate_synthesis()
    return {"course_id": ws.course_id, "status": "generated", "synthesis": text}
