"""Data transfer objects for the Cortex API.

This module defines the data structures exchanged with the server:
- Chat transcript entries (Message, RetrievedDocument)
- Knowledge base documents (Document, CreateDocument, Knowledge)
- Callable runs and request payloads (Run, CallableParams, ChatParams)
- The outcome of one chat turn (ChatCompletion)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


def _chunks(value) -> list["DocumentChunk"]:
    if not isinstance(value, list):
        return []
    return [DocumentChunk.from_dict(c) for c in value if isinstance(c, dict)]


@dataclass
class DocumentChunk:
    """A chunk of text retrieved from a knowledge base."""

    text: str
    hash: Optional[str] = None
    offset: Optional[int] = None
    vector: Optional[list[float]] = None
    score: Optional[float] = None

    @classmethod
    def from_dict(cls, d: dict) -> "DocumentChunk":
        return cls(
            text=d.get("text", ""),
            hash=d.get("hash"),
            offset=d.get("offset"),
            vector=d.get("vector"),
            score=d.get("score"),
        )


@dataclass
class RetrievedDocument:
    """A document returned by the RETRIEVALS block of a copilot."""

    source_url: Optional[str]
    document_id: str
    chunks: list[DocumentChunk] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict) -> "RetrievedDocument":
        return cls(
            source_url=d.get("source_url"),
            document_id=d.get("document_id", ""),
            chunks=_chunks(d.get("chunks")),
        )

    def to_dict(self) -> dict:
        return {
            "source_url": self.source_url,
            "document_id": self.document_id,
            "chunks": [{"text": c.text} for c in self.chunks],
        }


@dataclass
class Message:
    """One entry of a chat transcript.

    Attributes:
        role: "user", "assistant" or "error"
        content: Message text
        retrievals: Documents that grounded the message, or None
        updated_at: Last modification time
    """

    role: str
    content: str
    retrievals: Optional[list[RetrievedDocument]] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, d: dict) -> "Message":
        """Create a Message from its wire representation."""
        retrievals = d.get("retrievals")
        updated_at = d.get("updatedAt")
        if isinstance(updated_at, str):
            try:
                updated_at = datetime.fromisoformat(updated_at.replace("Z", "+00:00"))
            except ValueError:
                updated_at = None
        return cls(
            role=d.get("role", "assistant"),
            content=d.get("content") or "",
            retrievals=(
                [RetrievedDocument.from_dict(r) for r in retrievals if isinstance(r, dict)]
                if isinstance(retrievals, list)
                else None
            ),
            updated_at=updated_at if isinstance(updated_at, datetime) else None,
        )

    def to_dict(self) -> dict:
        """Serialize using the server's field names."""
        d: dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "retrievals": (
                [r.to_dict() for r in self.retrievals]
                if self.retrievals is not None
                else None
            ),
        }
        if self.updated_at is not None:
            d["updatedAt"] = self.updated_at.isoformat()
        return d


@dataclass
class ChatCompletion:
    """Result of one chat turn.

    Attributes:
        messages: The new transcript (history, user input, OUTPUT messages)
        response: The assistant message built from streamed tokens
    """

    messages: list[Message]
    response: Message


@dataclass
class Document:
    """A document stored in a knowledge base."""

    data_source_id: str
    document_id: str
    created: int = 0
    timestamp: int = 0
    tags: list[str] = field(default_factory=list)
    hash: str = ""
    text_size: int = 0
    chunk_count: int = 0
    chunks: list[DocumentChunk] = field(default_factory=list)
    text: Optional[str] = None
    source_url: Optional[str] = None

    @classmethod
    def from_dict(cls, d: dict) -> "Document":
        return cls(
            data_source_id=d.get("data_source_id", ""),
            document_id=d.get("document_id", ""),
            created=d.get("created", 0),
            timestamp=d.get("timestamp", 0),
            tags=list(d.get("tags") or []),
            hash=d.get("hash", ""),
            text_size=d.get("text_size", 0),
            chunk_count=d.get("chunk_count", 0),
            chunks=_chunks(d.get("chunks")),
            text=d.get("text"),
            source_url=d.get("source_url"),
        )


@dataclass
class CreateDocument:
    """Payload for uploading a document. Unset fields are not sent."""

    text: Optional[str] = None
    source_url: Optional[str] = None
    timestamp: Optional[int] = None
    tags: Optional[list[str]] = None

    def to_dict(self) -> dict:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass
class Knowledge:
    """A knowledge base (data source) owned by a project."""

    name: str
    visibility: str
    runner_project_id: str
    description: Optional[str] = None
    config: Optional[str] = None
    last_updated_at: Optional[str] = None
    hub: Optional[dict] = None

    @classmethod
    def from_dict(cls, d: dict) -> "Knowledge":
        return cls(
            name=d.get("name", ""),
            visibility=d.get("visibility", "private"),
            runner_project_id=d.get("runnerProjectId", ""),
            description=d.get("description"),
            config=d.get("config"),
            last_updated_at=d.get("lastUpdatedAt"),
            hub=d.get("hub"),
        )


@dataclass
class Run:
    """A callable run as reported by the runner.

    ``raw`` keeps the complete server payload for fields not modelled here.
    """

    run_id: str
    created: int
    run_type: str
    status: dict
    traces: list = field(default_factory=list)
    results: Optional[list] = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict) -> "Run":
        return cls(
            run_id=d.get("run_id", ""),
            created=d.get("created", 0),
            run_type=d.get("run_type", ""),
            status=d.get("status") or {},
            traces=d.get("traces") or [],
            results=d.get("results"),
            raw=d,
        )

    @property
    def succeeded(self) -> bool:
        return self.status.get("run") == "succeeded"


@dataclass
class CallableParams:
    """Inputs for running a callable."""

    version: str
    config: dict
    inputs: list
    blocking: Optional[bool] = None
    block_filter: Optional[list] = None

    def to_dict(self) -> dict:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass
class ChatParams:
    """Inputs for running a chat copilot."""

    version: str
    config: dict
    inputs: list

    def to_dict(self) -> dict:
        return {"version": self.version, "config": self.config, "inputs": self.inputs}


@dataclass
class DocumentUpload:
    """Server reply to a document upload."""

    document: Document
    knowledge: Optional[Knowledge] = None
