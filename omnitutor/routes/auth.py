from fastapi import APIRouter, Depends
from pydantic import BaseModel

from omnitutor.routes.deps import get_storage
from omnitutor.services.storage import StorageService

router = APIRouter(prefix="/api", tags=["auth"])

DEFAULT_USER_NAME = "Student"


class LoginBody(BaseModel):
    name: str | None = None


def _me(storage: StorageService) -> dict:
    authenticated = storage.read_text(storage.global_key("auth")) == "true"
    name = storage.read_text(storage.global_key("user_name")) or DEFAULT_USER_NAME
    return {"authenticated": authenticated, "name": name if authenticated else DEFAULT_USER_NAME}


# ------------------------------------------------------------------
# Mock gate: no credentials are checked
# ------------------------------------------------------------------


@router.post("/login")
async def login(body: LoginBody, storage: StorageService = Depends(get_storage)) -> dict:
    storage.write_text(storage.global_key("auth"), "true")
    if body.name and body.name.strip():
        storage.write_text(storage.global_key("user_name"), body.name.strip())
    return _me(storage)


@router.post("/logout")
async def logout(storage: StorageService = Depends(get_storage)) -> dict:
    """Close the gate. The display name is kept for the next login."""
    storage.remove(storage.global_key("auth"))
    return _me(storage)


@router.get("/me")
async def me(storage: StorageService = Depends(get_storage)) -> dict:
    return _me(storage)
