"""Grounding text handed to the chat model on every turn.

The context is rebuilt from the live folder and material collections each
time; nothing here is cached.  Titles and summaries are inserted verbatim.
"""

from omnitutor.models import Course, Material

KNOWLEDGE_BASE_HEADER = "=== KNOWLEDGE BASE (Analyzed Course Materials) ==="
NO_MATERIALS_NOTICE = (
    "No materials uploaded yet. Encourage the user to upload video, audio, or documents."
)


def _preamble(course: Course, web_search: bool) -> str:
    lines = [f'You are an expert AI Tutor for the course: "{course.title}".']
    if course.description:
        lines.append(f"Description: {course.description}")
    lines += [
        "",
        "Your goal is to help the student master this subject.",
        "Use the provided KNOWLEDGE BASE below to answer questions.",
        "",
    ]
    if web_search:
        lines += [
            "If the answer is not found in the knowledge base, you have access to web "
            "search to find up-to-date information. Use it to supplement your answers "
            "when necessary.",
            "",
        ]
    lines += [
        "CRITICAL CITATION RULE:",
        "When you derive an answer from a specific material in the Knowledge Base, you "
        "MUST cite the source title in bold brackets at the end of the sentence or "
        "paragraph.",
        "Format: **[Material Title]**",
        'Example: "The mitochondria is the powerhouse of the cell **[Lecture 1 Video]**."',
    ]
    return "\n".join(lines)


def format_material_line(material: Material) -> str:
    return f"[{material.type.upper()}] {material.title}: {material.summary}"


def build_course_context(
    course: Course,
    folders: list[str],
    materials: list[Material],
    *,
    web_search: bool = True,
) -> str:
    """Assemble the system instruction for a chat turn.

    Folders appear in registry order; folders without materials are skipped.
    """
    parts = [_preamble(course, web_search), "", KNOWLEDGE_BASE_HEADER]

    if not materials:
        parts.append(NO_MATERIALS_NOTICE)
        return "\n".join(parts)

    for folder in folders:
        folder_materials = [m for m in materials if m.folder == folder]
        if not folder_materials:
            continue
        parts.append("")
        parts.append(f"--- FOLDER: {folder} ---")
        parts.extend(format_material_line(m) for m in folder_materials)

    return "\n".join(parts)
