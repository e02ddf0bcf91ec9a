"""
API endpoint tests for the OmniTutor FastAPI application.

Tests cover:
- Mock login gate
- Course CRUD and cascading delete
- Folder endpoints and invariant errors
- Material upload and web research
- Chat sessions, messages, transcript download and speech
- Synthesis
"""

import pytest


@pytest.mark.api
class TestAuth:
    def test_login_logout_keeps_name(self, client):
        assert client.get("/api/me").json()["authenticated"] is False

        data = client.post("/api/login", json={"name": "Ada"}).json()
        assert data == {"authenticated": True, "name": "Ada"}

        client.post("/api/logout")
        assert client.get("/api/me").json()["authenticated"] is False
        assert client.post("/api/login", json={}).json()["name"] == "Ada"


@pytest.mark.api
class TestCourses:
    def test_demo_courses_listed(self, client):
        response = client.get("/api/courses")
        assert response.status_code == 200
        assert [c["title"] for c in response.json()] == ["Biology 101", "European History"]

    def test_create_edit_delete(self, client, kv):
        created = client.post("/api/courses", json={"title": "Chemistry", "description": "Labs"})
        assert created.status_code == 200
        course_id = created.json()["id"]

        edited = client.put(
            f"/api/courses/{course_id}", json={"title": "Chemistry II", "description": "More labs"}
        )
        assert edited.json()["title"] == "Chemistry II"

        client.post(f"/api/courses/{course_id}/folders", json={"name": "Labs"})
        client.post(f"/api/courses/{course_id}/sessions")

        deleted = client.delete(f"/api/courses/{course_id}")
        assert deleted.json()["status"] == "deleted"
        assert client.get(f"/api/courses/{course_id}").status_code == 404
        assert client.get(f"/api/courses/{course_id}/folders").status_code == 404
        assert not any(key.endswith(course_id) for key in kv.data)

    def test_blank_title_is_400(self, client):
        assert client.post("/api/courses", json={"title": " "}).status_code == 400


@pytest.mark.api
class TestFolders:
    def test_create_duplicate_is_409(self, client):
        response = client.post("/api/courses/1/folders", json={"name": "Week 1"})
        assert response.status_code == 409

    def test_rename_moves_materials(self, client, workspace_for):
        ws = workspace_for(client, "1")
        ws.add_material("document", "Notes", "Cells.", "Week 1")

        response = client.put("/api/courses/1/folders/Week 1", json={"new_name": "Intro"})

        assert response.status_code == 200
        assert response.json()["folders"][0] == "Intro"
        assert response.json()["target_folder"] == "Intro"
        materials = client.get("/api/courses/1/materials", params={"folder": "Intro"}).json()
        assert [m["title"] for m in materials] == ["Notes"]

    def test_delete_last_folder_is_409(self, client, storage):
        storage.write_json(storage.course_key("folders", "2"), ["Only"])

        response = client.delete("/api/courses/2/folders/Only")

        assert response.status_code == 409
        assert "at least one folder" in response.json()["detail"]
        assert client.get("/api/courses/2/folders").json()["folders"] == ["Only"]

    def test_slash_in_folder_name_is_400(self, client):
        response = client.post("/api/courses/1/folders", json={"name": "Labs/Extra"})
        assert response.status_code == 400
        assert "Labs/Extra" not in client.get("/api/courses/1/folders").json()["folders"]

    def test_target_folder_must_exist(self, client):
        response = client.put("/api/courses/1/target-folder", json={"name": "Week 99"})
        assert response.status_code == 400


@pytest.mark.api
class TestMaterials:
    def test_upload_document(self, client, tutor):
        client.put("/api/courses/1/target-folder", json={"name": "Week 2"})

        response = client.post(
            "/api/courses/1/materials/upload/document",
            files={"file": ("notes.pdf", b"%PDF-1.4", "application/pdf")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "document"
        assert data["folder"] == "Week 2"
        assert data["summary"] == "A summary of the upload."
        [(payload, mime, *_)] = tutor.called("summarize_media")
        assert payload == b"%PDF-1.4"
        assert mime == "application/pdf"

    def test_upload_failure_is_502_and_stores_nothing(self, client, tutor):
        tutor.fail("media_result")

        response = client.post(
            "/api/courses/1/materials/upload/video",
            files={"file": ("lecture.mp4", b"....", "video/mp4")},
        )

        assert response.status_code == 502
        assert response.json()["detail"] == "Failed to analyze video."
        assert client.get("/api/courses/1/materials").json() == []

    def test_unknown_upload_type_is_422(self, client):
        response = client.post(
            "/api/courses/1/materials/upload/web",
            files={"file": ("x.txt", b"x", "text/plain")},
        )
        assert response.status_code == 422

    def test_web_research_and_delete(self, client):
        created = client.post("/api/courses/1/materials/web", json={"query": "osmosis"})
        assert created.status_code == 200
        material = created.json()
        assert material["type"] == "web"
        assert material["sources"] == [{"title": "Example", "url": "https://example.com/topic"}]

        first = client.delete(f"/api/courses/1/materials/{material['id']}")
        again = client.delete(f"/api/courses/1/materials/{material['id']}")
        assert first.json()["removed"] is True
        assert again.json()["removed"] is False

    def test_no_uploads_in_flight(self, client):
        assert client.get("/api/courses/1/uploads").json() == {"uploading": False, "status": []}


@pytest.mark.api
class TestChat:
    def test_send_message_returns_reply(self, client, tutor):
        sessions = client.get("/api/courses/1/sessions").json()
        session_id = sessions["active_session_id"]

        response = client.post(
            f"/api/courses/1/sessions/{session_id}/messages", json={"text": "What is a cell?"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["reply"]["role"] == "model"
        assert data["reply"]["content"] == "Here is what I know."
        assert [m["role"] for m in data["session"]["messages"]] == ["model", "user", "model"]
        assert data["session"]["awaiting"] is False

    def test_empty_message_is_400(self, client):
        session_id = client.get("/api/courses/1/sessions").json()["active_session_id"]
        response = client.post(f"/api/courses/1/sessions/{session_id}/messages", json={"text": ""})
        assert response.status_code == 400

    def test_session_lifecycle(self, client):
        first = client.get("/api/courses/1/sessions").json()["active_session_id"]

        assert client.delete(f"/api/courses/1/sessions/{first}").status_code == 409

        created = client.post("/api/courses/1/sessions").json()
        assert client.get("/api/courses/1/sessions").json()["active_session_id"] == created["id"]

        renamed = client.put(
            f"/api/courses/1/sessions/{created['id']}/title", json={"title": "Revision"}
        )
        assert renamed.json()["title"] == "Revision"

        deleted = client.delete(f"/api/courses/1/sessions/{created['id']}").json()
        assert deleted["active_session_id"] == first

    def test_unknown_session_is_404(self, client):
        assert client.get("/api/courses/1/sessions/nope").status_code == 404

    def test_transcript_download(self, client):
        session_id = client.get("/api/courses/1/sessions").json()["active_session_id"]
        client.post(f"/api/courses/1/sessions/{session_id}/messages", json={"text": "Hi"})

        response = client.get(f"/api/courses/1/sessions/{session_id}/transcript")

        assert response.status_code == 200
        assert "Biology_101_transcript.txt" in response.headers["content-disposition"]
        assert "You:\nHi" in response.text

    def test_speech_toggle(self, client):
        session = client.get("/api/courses/1/sessions").json()["sessions"][0]
        message_id = session["messages"][0]["id"]

        played = client.post(f"/api/courses/1/messages/{message_id}/speech")
        assert played.status_code == 200
        assert played.headers["content-type"] == "audio/wav"
        assert played.content[:4] == b"RIFF"

        stopped = client.post(f"/api/courses/1/messages/{message_id}/speech")
        assert stopped.status_code == 204


@pytest.mark.api
class TestSynthesis:
    def test_empty_course_is_400_without_backend_call(self, client, tutor):
        response = client.post("/api/courses/1/synthesis")

        assert response.status_code == 400
        assert tutor.called("synthesize_course") == []

    def test_generate_and_read_back(self, client):
        client.post("/api/courses/1/materials/web", json={"query": "osmosis"})

        generated = client.post("/api/courses/1/synthesis")

        assert generated.json()["synthesis"] == "Course synthesis."
        assert client.get("/api/courses/1/synthesis").json()["synthesis"] == "Course synthesis."
