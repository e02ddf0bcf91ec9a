from __future__ import annotations

import logging
import random
from contextlib import contextmanager
from typing import Iterator

from omnitutor.errors import EmptyInput, NotFound
from omnitutor.models import Course, new_id
from omnitutor.services.storage import StorageService

LOGGER = logging.getLogger(__name__)

COURSE_COLORS = [
    "bg-blue-600", "bg-violet-600", "bg-emerald-600",
    "bg-amber-600", "bg-rose-600", "bg-cyan-600",
]

DEMO_COURSES = [
    Course(
        id="1",
        title="Biology 101",
        description="Introduction to Cell Biology and Genetics",
        color="bg-emerald-600",
        icon="book",
    ),
    Course(
        id="2",
        title="European History",
        description="History of Europe from 1900 to Present",
        color="bg-blue-600",
        icon="history",
    ),
]


class CourseCatalog:
    """The global list of courses.

    Deleting a course releases every per-course entry in storage.
    """

    def __init__(self, storage: StorageService) -> None:
        self.storage = storage
        self.key = storage.global_key("courses")

    def list(self) -> list[Course]:
        saved = self.storage.read_json(self.key)
        if saved is None:
            with self.storage.lock(self.key):
                saved = self.storage.read_json(self.key)
                if saved is None:
                    saved = [c.to_dict() for c in DEMO_COURSES]
                    self.storage.write_json(self.key, saved)
        return [Course.from_dict(c) for c in saved]

    def get(self, course_id: str) -> Course:
        for course in self.list():
            if course.id == course_id:
                return course
        raise NotFound(f"Course {course_id} not found")

    def create(self, title: str, description: str = "") -> Course:
        if not title.strip():
            raise EmptyInput("Course title is required.")
        self.list()  # seeds the demo courses on first use
        course = Course(
            id=new_id(),
            title=title,
            description=description,
            color=random.choice(COURSE_COLORS),
            icon="book",
        )
        self.storage.update(self.key, lambda items: [*items, course.to_dict()], [])
        LOGGER.info("Created course %s (%s)", course.id, course.title)
        return course

    def edit(self, course_id: str, title: str, description: str) -> Course:
        if not title.strip():
            raise EmptyInput("Course title is required.")
        self.get(course_id)

        def _edit(items: list[dict]) -> list[dict]:
            return [
                {**c, "title": title, "description": description}
                if str(c["id"]) == course_id
                else c
                for c in items
            ]

        self.storage.update(self.key, _edit, [])
        return self.get(course_id)

    @contextmanager
    def holding(self, course_id: str) -> Iterator[Course]:
        """Keep ``course_id`` from being deleted while the block writes its state.

        Raises ``NotFound`` if the course is already gone.
        """
        with self.storage.lock(self.key):
            yield self.get(course_id)

    def delete(self, course_id: str) -> None:
        with self.storage.lock(self.key):
            self.get(course_id)
            self.storage.update(
                self.key, lambda items: [c for c in items if str(c["id"]) != course_id], []
            )
            self.storage.drop_course(course_id)
        LOGGER.info("Deleted course %s and its stored state", course_id)
