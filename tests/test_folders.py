"""
Tests for the folder registry and its cascades into the material store.
"""

import pytest

from omnitutor.errors import DuplicateName, InvalidFolder, LastFolderError, ValidationError
from omnitutor.services.folders import DEFAULT_FOLDERS, FolderRegistry
from omnitutor.services.materials import MaterialStore


@pytest.fixture
def folders(storage):
    return FolderRegistry(storage, "c1")


@pytest.fixture
def materials(storage, folders):
    return MaterialStore(storage, "c1", folders)


@pytest.mark.unit
class TestCreate:
    def test_new_course_starts_with_default_folders(self, folders):
        assert folders.list() == DEFAULT_FOLDERS

    def test_create_appends_stripped_name(self, folders):
        folders.create("  Labs ")
        assert folders.list()[-1] == "Labs"

    def test_duplicate_name_rejected(self, folders):
        with pytest.raises(DuplicateName):
            folders.create("Week 1")
        assert folders.list() == DEFAULT_FOLDERS

    def test_blank_name_rejected(self, folders):
        with pytest.raises(DuplicateName):
            folders.create("   ")

    def test_names_are_case_sensitive(self, folders):
        folders.create("week 1")
        assert "week 1" in folders.list()

    def test_slash_in_name_rejected(self, folders):
        with pytest.raises(ValidationError):
            folders.create("Labs/Extra")
        with pytest.raises(ValidationError):
            folders.rename("Week 1", "Week 1/2")
        assert folders.list() == DEFAULT_FOLDERS


@pytest.mark.unit
class TestRename:
    def test_rename_moves_materials_and_keeps_order(self, folders, materials):
        a = materials.add("document", "Notes", "Cells.", "Week 2")
        b = materials.add("video", "Lecture", "Mitosis.", "Week 2")
        other = materials.add("audio", "Podcast", "DNA.", "Week 3")

        folders.rename("Week 2", "Cells")

        names = folders.list()
        assert names[1] == "Cells"
        assert "Week 2" not in names
        assert names.count("Cells") == 1
        assert {m.id for m in materials.list_by_folder("Cells")} == {a.id, b.id}
        assert materials.list_by_folder("Week 2") == []
        assert materials.get(other.id).folder == "Week 3"

    def test_rename_to_existing_name_rejected(self, folders, materials):
        materials.add("document", "Notes", "Cells.", "Week 1")
        with pytest.raises(DuplicateName):
            folders.rename("Week 1", "Week 2")
        assert folders.list() == DEFAULT_FOLDERS
        assert materials.list()[0].folder == "Week 1"

    def test_rename_to_same_name_is_noop(self, folders):
        assert folders.rename("Week 1", "Week 1") == "Week 1"
        assert folders.list() == DEFAULT_FOLDERS

    def test_rename_unknown_folder(self, folders):
        with pytest.raises(InvalidFolder):
            folders.rename("Week 99", "Later")


@pytest.mark.unit
class TestDelete:
    def test_delete_cascades_only_that_folders_materials(self, folders, materials):
        materials.add("document", "Notes", "Cells.", "Week 1")
        materials.add("video", "Lecture", "Mitosis.", "Week 1")
        kept = materials.add("audio", "Podcast", "DNA.", "Week 2")

        removed = folders.delete("Week 1")

        assert removed == 2
        assert "Week 1" not in folders.list()
        assert [m.id for m in materials.list()] == [kept.id]

    def test_sole_folder_cannot_be_deleted(self, storage, folders, materials):
        storage.write_json(folders.key, ["Only"])
        materials.add("web", "Search", "Result.", "Only")

        with pytest.raises(LastFolderError):
            folders.delete("Only")

        assert folders.list() == ["Only"]
        assert len(materials.list()) == 1

    def test_delete_unknown_folder(self, folders):
        with pytest.raises(InvalidFolder):
            folders.delete("Nope")
