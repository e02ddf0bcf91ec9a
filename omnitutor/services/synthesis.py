import logging

from omnitutor.errors import CollaboratorError, NoMaterials
from omnitutor.services.materials import MaterialStore
from omnitutor.services.storage import StorageService
from omnitutor.services.tutor import TutorService

LOGGER = logging.getLogger(__name__)


class SynthesisService:
    """Course-wide summary, always recomputed in full from the materials."""

    def __init__(
        self,
        storage: StorageService,
        course_id: str,
        materials: MaterialStore,
        tutor: TutorService,
    ) -> None:
        self.storage = storage
        self.course_id = course_id
        self.materials = materials
        self.tutor = tutor
        self.key = storage.course_key("synthesis", course_id)

    def get(self) -> str:
        return self.storage.read_text(self.key)

    async def compose(self, course_title: str) -> str:
        """Ask the backend for a fresh synthesis without storing it.

        Raises ``NoMaterials`` without calling the backend when the course is
        empty.
        """
        materials = self.materials.list()
        if not materials:
            raise NoMaterials()

        result = await self.tutor.synthesize_course(materials, course_title)
        if not result.ok:
            LOGGER.error("Course %s: synthesis failed: %s", self.course_id, result.message)
            raise CollaboratorError("Failed to generate synthesis", result.kind)

        LOGGER.info(
            "Course %s: synthesis composed from %d material(s)",
            self.course_id,
            len(materials),
        )
        return result.text

    def save(self, text: str) -> None:
        """Replace the stored synthesis. A failed ``compose`` never gets here."""
        self.storage.write_text(self.key, text)
