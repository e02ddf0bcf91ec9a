from __future__ import annotations

import logging

from omnitutor.errors import InvalidFolder, ValidationError
from omnitutor.models import MATERIAL_TYPES, Material, MaterialType, new_id, now_ms
from omnitutor.services.folders import DEFAULT_FOLDERS, FolderRegistry
from omnitutor.services.storage import StorageService

LOGGER = logging.getLogger(__name__)


class MaterialStore:
    """Analyzed-content records of one course, newest first."""

    def __init__(
        self, storage: StorageService, course_id: str, folders: FolderRegistry
    ) -> None:
        self.storage = storage
        self.course_id = course_id
        self.folders = folders
        self.key = storage.course_key("materials", course_id)

    def list(self) -> list[Material]:
        return [
            Material.from_dict(m, default_folder=DEFAULT_FOLDERS[0])
            for m in self.storage.read_json(self.key, [])
        ]

    def list_by_folder(self, folder: str) -> list[Material]:
        return [m for m in self.list() if m.folder == folder]

    def get(self, material_id: str) -> Material | None:
        return next((m for m in self.list() if m.id == material_id), None)

    def add(
        self, type: MaterialType, title: str, summary: str, folder: str
    ) -> Material:
        if type not in MATERIAL_TYPES:
            raise ValidationError(f"Unknown material type: {type}")

        material = Material(
            id=new_id(),
            type=type,
            title=title,
            summary=summary,
            timestamp=now_ms(),
            folder=folder,
        )
        # Folder lock first so a concurrent folder delete cannot slip in
        # between the existence check and the write.
        with self.storage.lock(self.folders.key):
            if not self.folders.exists(folder):
                raise InvalidFolder(folder)
            self.storage.update(
                self.key, lambda mats: [material.to_dict(), *mats], []
            )

        LOGGER.info(
            "Course %s: stored %s material '%s' in '%s'",
            self.course_id,
            type,
            title,
            folder,
        )
        return material

    def remove(self, material_id: str) -> bool:
        """Delete ``material_id``. Unknown ids are a no-op (returns False)."""
        removed = False

        def _drop(mats: list[dict]) -> list[dict]:
            nonlocal removed
            kept = [m for m in mats if str(m["id"]) != material_id]
            removed = len(kept) != len(mats)
            return kept

        self.storage.update(self.key, _drop, [])
        if removed:
            LOGGER.info("Course %s: removed material %s", self.course_id, material_id)
        return removed
