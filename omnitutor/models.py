import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Literal

MaterialType = Literal["video", "audio", "document", "web"]
Role = Literal["user", "model"]

MATERIAL_TYPES: tuple[str, ...] = ("video", "audio", "document", "web")


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Course:
    id: str
    title: str
    description: str = ""
    color: str = "bg-blue-600"
    icon: str = "book"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Course":
        return cls(
            id=str(data["id"]),
            title=data["title"],
            description=data.get("description", ""),
            color=data.get("color", "bg-blue-600"),
            icon=data.get("icon", "book"),
        )


@dataclass
class Material:
    id: str
    type: MaterialType
    title: str
    summary: str
    timestamp: int
    folder: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict, default_folder: str = "") -> "Material":
        return cls(
            id=str(data["id"]),
            type=data["type"],
            title=data["title"],
            summary=data.get("summary", ""),
            timestamp=int(data.get("timestamp", 0)),
            # Records written before folders existed carry no folder
            folder=data.get("folder") or default_folder,
        )


@dataclass
class Message:
    id: str
    role: Role
    content: str
    timestamp: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            id=str(data["id"]),
            role=data["role"],
            content=data["content"],
            timestamp=int(data.get("timestamp", 0)),
        )


@dataclass
class ChatSession:
    id: str
    title: str
    messages: list[Message] = field(default_factory=list)
    last_modified: int = 0

    def to_dict(self) -> dict:
        # camelCase on disk, matching the stored browser format
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "lastModified": self.last_modified,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChatSession":
        return cls(
            id=str(data["id"]),
            title=data.get("title", "New Conversation"),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            last_modified=int(data.get("lastModified", 0)),
        )

    def user_message_count(self) -> int:
        return sum(1 for m in self.messages if m.role == "user")
