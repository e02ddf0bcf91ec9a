from typing import Literal

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel

from omnitutor.routes.deps import get_workspace
from omnitutor.services.workspace import CourseWorkspace

router = APIRouter(prefix="/api/courses/{course_id}", tags=["materials"])


class ResearchRequest(BaseModel):
    query: str


@router.get("/materials")
async def list_materials(
    folder: str | None = None, ws: CourseWorkspace = Depends(get_workspace)
) -> list[dict]:
    """All materials newest first, or only those in ``folder``."""
    materials = ws.materials.list_by_folder(folder) if folder else ws.materials.list()
    return [m.to_dict() for m in materials]


@router.delete("/materials/{material_id}")
async def delete_material(material_id: str, ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    removed = ws.remove_material(material_id)
    return {"material_id": material_id, "removed": removed}


@router.post("/materials/upload/{material_type}")
async def upload_material(
    material_type: Literal["video", "audio", "document"],
    file: UploadFile = File(...),
    ws: CourseWorkspace = Depends(get_workspace),
) -> dict:
    """Analyze an uploaded file and store the summary in the current upload target."""
    data = await file.read()
    material = await ws.analyze_upload(
        material_type, file.filename or "upload", data, file.content_type or ""
    )
    return material.to_dict()


@router.post("/materials/web")
async def research_topic(body: ResearchRequest, ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    material, sources = await ws.research(body.query)
    return {
        **material.to_dict(),
        "sources": [{"title": s.title, "url": s.url} for s in sources],
    }


@router.get("/uploads")
async def upload_status(ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    """Status lines of analyses still in flight."""
    return {"uploading": bool(ws.upload_status), "status": list(ws.upload_status.values())}
