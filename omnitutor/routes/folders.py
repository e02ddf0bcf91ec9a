from fastapi import APIRouter, Depends
from pydantic import BaseModel

from omnitutor.routes.deps import get_workspace
from omnitutor.services.workspace import CourseWorkspace

router = APIRouter(prefix="/api/courses/{course_id}", tags=["folders"])


class FolderCreate(BaseModel):
    name: str


class FolderRename(BaseModel):
    new_name: str


class FolderSelect(BaseModel):
    name: str | None = None


def _folder_view(ws: CourseWorkspace) -> dict:
    return {
        "folders": ws.folders.list(),
        "target_folder": ws.resolve_target_folder(),
        "expanded_folders": ws.expanded_folders,
        "current_folder_view": ws.current_folder_view,
    }


@router.get("/folders")
async def list_folders(ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    return _folder_view(ws)


@router.post("/folders")
async def create_folder(body: FolderCreate, ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    ws.create_folder(body.name)
    return _folder_view(ws)


@router.put("/folders/{name}")
async def rename_folder(
    name: str, body: FolderRename, ws: CourseWorkspace = Depends(get_workspace)
) -> dict:
    """Rename a folder; its materials move with it."""
    ws.rename_folder(name, body.new_name)
    return _folder_view(ws)


@router.delete("/folders/{name}")
async def delete_folder(name: str, ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    """Delete a folder and every material inside it."""
    removed = ws.delete_folder(name)
    return {**_folder_view(ws), "materials_removed": removed}


@router.post("/folders/{name}/toggle")
async def toggle_folder(name: str, ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    ws.toggle_folder(name)
    return _folder_view(ws)


@router.put("/target-folder")
async def set_target_folder(body: FolderSelect, ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    ws.set_target_folder(body.name or "")
    return _folder_view(ws)


@router.put("/current-folder")
async def set_current_folder(body: FolderSelect, ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    ws.open_folder(body.name)
    return _folder_view(ws)
