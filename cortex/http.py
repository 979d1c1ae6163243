"""
Native Python client for the Cortex SDK API.

Provides async access to knowledge base documents, callables and chat
copilots. Streamed runs are exposed as StreamedRun objects (see stream.py).
"""

from typing import Any, Optional

import httpx

from .config import DEFAULT_BASE_URL, TIMEOUT_DEFAULT, CortexConfig, get_config
from .models import (
    CallableParams,
    ChatCompletion,
    ChatParams,
    CreateDocument,
    Document,
    DocumentUpload,
    Knowledge,
    Message,
    Run,
)
from .result import ApiError, Err, Ok, Result
from .runner import ChatRunner, new_user_message
from .stream import StreamedRun, consume


class CortexClient:
    """Async client for the Cortex SDK API.

    Every request method returns a Result instead of raising on HTTP or
    connection errors.

    Usage:
        async with CortexClient(api_key="sk-...", user_id="u-1") as client:
            res = await client.get_document("notes", "doc-1")
            if res.is_ok():
                print(res.value.text)

            res = await client.run_chat_completion(
                "1", [], "Hello", "proj-1", "notes", "cop-1"
            )
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        user_id: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = TIMEOUT_DEFAULT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verbose: bool = False,
    ):
        self.api_key = api_key
        self.user_id = user_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.verbose = verbose
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: Optional[CortexConfig] = None, **kwargs) -> "CortexClient":
        """Create a client from environment and settings file configuration."""
        config = config or get_config()
        return cls(
            api_key=config.api_key,
            user_id=config.user_id,
            base_url=config.base_url,
            timeout=config.timeout,
            verbose=config.verbose,
            **kwargs,
        )

    async def __aenter__(self) -> "CortexClient":
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers=headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._client:
            await self._client.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with CortexClient()' context.")
        return self._client

    @property
    def project_url(self) -> str:
        if not self.user_id:
            raise RuntimeError("user_id is required for project endpoints")
        return f"{self.base_url}/p/{self.user_id}"

    def _log(self, *args, **kwargs):
        if self.verbose:
            print(*args, **kwargs)

    # =========================================================================
    # Plain requests
    # =========================================================================

    async def _request(
        self,
        method: str,
        url: str,
        payload: Optional[dict] = None,
    ) -> Result[dict, ApiError]:
        """Send a JSON request and return the decoded body."""
        self._log(f"{method} {url}")
        try:
            resp = await self.client.request(method, url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            return Err(
                ApiError(
                    type="api_error",
                    code="http_error",
                    message=_error_message(e.response, f"{method} {url} failed"),
                )
            )
        except httpx.RequestError as e:
            return Err(
                ApiError(
                    type="api_error",
                    code="request_error",
                    message=f"{method} {url} failed: {e}",
                )
            )

        try:
            body = resp.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return Err(
                ApiError(
                    type="api_error",
                    code="invalid_response",
                    message=f"{method} {url} returned a non-object body",
                )
            )
        return Ok(body)

    def _document_url(self, knowledge_name: str, document_id: str) -> str:
        return f"{self.project_url}/knowledge/{knowledge_name}/d/{document_id}"

    async def get_document(
        self, knowledge_name: str, document_id: str
    ) -> Result[Document, ApiError]:
        """Fetch a document from a knowledge base.

        Args:
            knowledge_name: Knowledge base name
            document_id: Document to fetch

        Returns:
            Ok(Document) or Err(ApiError)
        """
        res = await self._request("GET", self._document_url(knowledge_name, document_id))
        if res.is_err():
            return res
        return _field(res.value, "document", Document.from_dict)

    async def upload_document(
        self,
        knowledge_name: str,
        document_id: str,
        document: CreateDocument,
    ) -> Result[DocumentUpload, ApiError]:
        """Create or replace a document in a knowledge base.

        Args:
            knowledge_name: Knowledge base name
            document_id: Id to store the document under
            document: Text, source URL, tags and timestamp to upload

        Returns:
            Ok(DocumentUpload) with the stored document and its knowledge base
        """
        res = await self._request(
            "POST",
            self._document_url(knowledge_name, document_id),
            payload=document.to_dict(),
        )
        if res.is_err():
            return res
        stored = _field(res.value, "document", Document.from_dict)
        if stored.is_err():
            return stored
        knowledge = res.value.get("knowledge")
        return Ok(
            DocumentUpload(
                document=stored.value,
                knowledge=Knowledge.from_dict(knowledge) if isinstance(knowledge, dict) else None,
            )
        )

    async def delete_document(
        self, knowledge_name: str, document_id: str
    ) -> Result[Document, ApiError]:
        """Delete a document from a knowledge base.

        Returns:
            Ok(Document) with the deleted document, or Err(ApiError)
        """
        res = await self._request("DELETE", self._document_url(knowledge_name, document_id))
        if res.is_err():
            return res
        return _field(res.value, "document", Document.from_dict)

    async def run_callable(
        self, callable_id: str, params: CallableParams
    ) -> Result[Run, ApiError]:
        """Run a callable and wait for the run description.

        Args:
            callable_id: Callable to run
            params: Version, config and inputs

        Returns:
            Ok(Run) or Err(ApiError)
        """
        res = await self._request(
            "POST", f"{self.project_url}/a/{callable_id}/r", payload=params.to_dict()
        )
        if res.is_err():
            return res
        return _field(res.value, "run", Run.from_dict)

    # =========================================================================
    # Streamed runs
    # =========================================================================

    async def _stream(self, url: str, payload: dict) -> Result[StreamedRun, ApiError]:
        self._log(f"POST {url} (stream)")
        request = self.client.build_request("POST", url, json=payload)
        try:
            response = await self.client.send(request, stream=True)
        except httpx.RequestError as e:
            return Err(
                ApiError(
                    type="runner_api_error",
                    code="streamed_run_error",
                    message=f"Error running streamed app: {e}",
                )
            )
        return await consume(response)

    async def run_callable_stream(
        self, callable_id: str, params: CallableParams
    ) -> Result[StreamedRun, ApiError]:
        """Run a callable and stream its events.

        Returns:
            Ok(StreamedRun) or Err with code ``streamed_run_error``
        """
        payload = {**params.to_dict(), "stream": True}
        return await self._stream(f"{self.project_url}/a/{callable_id}/r", payload)

    async def run_chat_copilot(
        self, copilot_id: str, params: ChatParams
    ) -> Result[StreamedRun, ApiError]:
        """Run a chat copilot and stream its events.

        Returns:
            Ok(StreamedRun) or Err with code ``streamed_run_error``
        """
        return await self._stream(f"{self.base_url}/copilot/{copilot_id}", params.to_dict())

    # =========================================================================
    # Chat
    # =========================================================================

    def create_chat_input(self, messages: list[Message], user_input: str) -> list[dict]:
        """Build copilot inputs: the history followed by the new user message."""
        history = [*messages, new_user_message(user_input)]
        return [{"messages": [m.to_dict() for m in history]}]

    def create_chat_config(self, project_id: str, knowledge_name: str) -> dict[str, Any]:
        """Build the copilot block config streaming output and retrieving from a knowledge base."""
        return {
            "OUTPUT_STREAM": {"use_stream": True},
            "RETRIEVALS": {
                "knowledge": [{"project_id": project_id, "data_source_id": knowledge_name}]
            },
        }

    def create_chat_param(
        self,
        version: str,
        messages: list[Message],
        user_input: str,
        project_id: str,
        knowledge_name: str,
    ) -> ChatParams:
        return ChatParams(
            version=version,
            config=self.create_chat_config(project_id, knowledge_name),
            inputs=self.create_chat_input(messages, user_input),
        )

    async def run_chat_completion(
        self,
        version: str,
        messages: list[Message],
        user_input: str,
        project_id: str,
        knowledge_name: str,
        copilot_id: str,
    ) -> Result[ChatCompletion, ApiError]:
        """Run one chat turn against a copilot.

        The given transcript is not modified; the new one is returned.

        Args:
            version: Copilot version
            messages: Conversation so far
            user_input: New user message
            project_id: Project owning the knowledge base
            knowledge_name: Knowledge base used for retrievals
            copilot_id: Copilot to run

        Returns:
            Ok(ChatCompletion) or Err(ApiError)
        """
        runner = ChatRunner(self, copilot_id, verbose=self.verbose)
        return await runner.run(version, messages, user_input, project_id, knowledge_name)


def _error_message(response: httpx.Response, prefix: str) -> str:
    """Describe a failed response, using the server's error message when present."""
    message = f"{prefix}: status_code={response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return message
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        if detail := body["error"].get("message"):
            return f"{message}: {detail}"
    return message


def _field(body: dict, key: str, build) -> Result[Any, ApiError]:
    value = body.get(key)
    if not isinstance(value, dict):
        return Err(
            ApiError(
                type="api_error",
                code="invalid_response",
                message=f"Response is missing '{key}'",
            )
        )
    return Ok(build(value))
