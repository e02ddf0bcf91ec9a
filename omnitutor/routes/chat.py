from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from omnitutor.models import ChatSession
from omnitutor.routes.deps import get_workspace
from omnitutor.services.speech import pcm_to_wav
from omnitutor.services.workspace import CourseWorkspace

router = APIRouter(prefix="/api/courses/{course_id}", tags=["chat"])


# ------------------------------------------------------------------
# Request bodies
# ------------------------------------------------------------------


class MessageCreate(BaseModel):
    text: str


class TitleUpdate(BaseModel):
    title: str


def _session_view(ws: CourseWorkspace, session: ChatSession) -> dict:
    return {**session.to_dict(), "awaiting": ws.is_awaiting(session.id)}


# ------------------------------------------------------------------
# Session endpoints
# ------------------------------------------------------------------


@router.get("/sessions")
async def list_sessions(ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    sessions = ws.sessions
    return {
        "active_session_id": sessions.active_session().id,
        "sessions": [_session_view(ws, s) for s in sessions.list()],
    }


@router.post("/sessions")
async def create_session(ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    return _session_view(ws, ws.new_session())


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    return _session_view(ws, ws.sessions.get(session_id))


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str, ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    active = ws.delete_session(session_id)
    return {"session_id": session_id, "status": "deleted", "active_session_id": active.id}


@router.put("/sessions/{session_id}/active")
async def select_session(session_id: str, ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    return _session_view(ws, ws.select_session(session_id))


@router.put("/sessions/{session_id}/title")
async def rename_session(
    session_id: str, body: TitleUpdate, ws: CourseWorkspace = Depends(get_workspace)
) -> dict:
    return _session_view(ws, ws.rename_session(session_id, body.title))


@router.post("/sessions/{session_id}/messages")
async def send_message(
    session_id: str, body: MessageCreate, ws: CourseWorkspace = Depends(get_workspace)
) -> dict:
    """Send a user message and wait for the tutor's reply."""
    reply = await ws.send_message(body.text, session_id)
    return {"reply": reply.to_dict(), "session": _session_view(ws, ws.sessions.get(session_id))}


@router.get("/sessions/{session_id}/transcript")
async def download_transcript(
    session_id: str, ws: CourseWorkspace = Depends(get_workspace)
) -> PlainTextResponse:
    transcript = ws.export_transcript(session_id)
    course_title = ws.course.title.replace(" ", "_")
    return PlainTextResponse(
        transcript,
        headers={"Content-Disposition": f'attachment; filename="{course_title}_transcript.txt"'},
    )


# ------------------------------------------------------------------
# Speech
# ------------------------------------------------------------------


@router.post("/messages/{message_id}/speech")
async def toggle_speech(message_id: str, ws: CourseWorkspace = Depends(get_workspace)) -> Response:
    """Read a message aloud. Asking again for the playing message stops it (204)."""
    clip = await ws.toggle_speech(message_id)
    if clip is None:
        return Response(status_code=204)
    return Response(content=pcm_to_wav(clip.pcm, clip.sample_rate), media_type="audio/wav")


@router.delete("/speech")
async def stop_speech(ws: CourseWorkspace = Depends(get_workspace)) -> dict:
    ws.speech.stop()
    return {"playing_message_id": None}
