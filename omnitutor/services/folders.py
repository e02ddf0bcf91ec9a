from __future__ import annotations

import logging

from omnitutor.errors import DuplicateName, InvalidFolder, LastFolderError, ValidationError
from omnitutor.services.storage import StorageService

LOGGER = logging.getLogger(__name__)

DEFAULT_FOLDERS = [
    "Week 1", "Week 2", "Week 3", "Week 4", "Week 5",
    "Week 6", "Week 7", "Week 8", "Week 9", "Week 10",
    "Group Project",
]


def _clean_name(name: str) -> str:
    clean = name.strip()
    if not clean:
        raise DuplicateName(clean)
    # Folder names are used as URL path segments.
    if "/" in clean:
        raise ValidationError("Folder names cannot contain '/'.")
    return clean


class FolderRegistry:
    """Named buckets that a course's materials belong to.

    Materials reference folders by name, so renames and deletes cascade into
    the material collection.  Both keys are locked (folders first, then
    materials) for the duration of a cascading change.
    """

    def __init__(self, storage: StorageService, course_id: str) -> None:
        self.storage = storage
        self.course_id = course_id
        self.key = storage.course_key("folders", course_id)
        self.materials_key = storage.course_key("materials", course_id)

    def list(self) -> list[str]:
        return list(self.storage.read_json(self.key, DEFAULT_FOLDERS))

    def exists(self, name: str) -> bool:
        return name in self.list()

    def first(self) -> str:
        return self.list()[0]

    def create(self, name: str) -> str:
        clean = _clean_name(name)

        def _append(folders: list[str]) -> list[str]:
            if clean in folders:
                raise DuplicateName(clean)
            return [*folders, clean]

        self.storage.update(self.key, _append, DEFAULT_FOLDERS)
        LOGGER.info("Course %s: created folder '%s'", self.course_id, clean)
        return clean

    def rename(self, old_name: str, new_name: str) -> str:
        """Rename ``old_name`` and move its materials along with it."""
        clean = _clean_name(new_name)

        with self.storage.lock(self.key), self.storage.lock(self.materials_key):
            folders = self.list()
            if old_name not in folders:
                raise InvalidFolder(old_name)
            if clean == old_name:
                return old_name
            if clean in folders:
                raise DuplicateName(clean)

            self.storage.write_json(
                self.key, [clean if f == old_name else f for f in folders]
            )
            self.storage.update(
                self.materials_key,
                lambda mats: [
                    {**m, "folder": clean} if m.get("folder") == old_name else m
                    for m in mats
                ],
                [],
            )

        LOGGER.info(
            "Course %s: renamed folder '%s' to '%s'", self.course_id, old_name, clean
        )
        return clean

    def delete(self, name: str) -> int:
        """Remove ``name`` and every material in it. Returns the number removed."""
        with self.storage.lock(self.key), self.storage.lock(self.materials_key):
            folders = self.list()
            if name not in folders:
                raise InvalidFolder(name)
            if len(folders) <= 1:
                raise LastFolderError()

            self.storage.write_json(self.key, [f for f in folders if f != name])
            materials = self.storage.read_json(self.materials_key, [])
            kept = [m for m in materials if m.get("folder") != name]
            self.storage.write_json(self.materials_key, kept)

        removed = len(materials) - len(kept)
        LOGGER.info(
            "Course %s: deleted folder '%s' with %d material(s)",
            self.course_id,
            name,
            removed,
        )
        return removed
