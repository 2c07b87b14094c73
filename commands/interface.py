"""
Command Interface — the backend mutations capabilities call into.

Responsibility:
- Define the async command surface (projects, files, messages, scheduling)
- Provide an in-process backend (CLI, demo API, tests)
- Provide an HTTP backend that posts each command as JSON

Prohibitions:
- No capability logic
- No retry policy (callers decide)
"""

from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import httpx

from shared.errors import CommandError
from shared.models import utc_now

logger = logging.getLogger(__name__)


class CommandInterface(ABC):
    """Async backend commands used by capabilities.
    Every call may fail with CommandError.
    """

    @abstractmethod
    async def create_project(self, name: str, description: str = "", status: str = "active") -> dict[str, Any]:
        ...

    @abstractmethod
    async def create_file(
        self,
        name: str,
        file_type: str,
        project_id: str,
        content: str = "",
        **fields: Any,
    ) -> dict[str, Any]:
        ...

    @abstractmethod
    async def store_message(
        self,
        role: str,
        content: str,
        session_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        ...

    @abstractmethod
    async def get_all_files(self) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def get_projects(self) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def schedule_post(self, file_id: str, scheduled_for: datetime) -> dict[str, Any]:
        ...


class InMemoryCommandInterface(CommandInterface):
    """Process-local backend. Records every call in `calls`."""

    def __init__(self):
        self.projects: dict[str, dict[str, Any]] = {}
        self.files: dict[str, dict[str, Any]] = {}
        self.messages: list[dict[str, Any]] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._ids = itertools.count(1)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    async def create_project(self, name: str, description: str = "", status: str = "active") -> dict[str, Any]:
        self.calls.append(("create_project", {"name": name, "description": description, "status": status}))
        if not name.strip():
            raise CommandError("Project name is required", command="create_project")
        project = {
            "id": self._next_id("project"),
            "name": name,
            "description": description,
            "status": status,
            "created_at": utc_now().isoformat(),
        }
        self.projects[project["id"]] = project
        return dict(project)

    async def create_file(
        self,
        name: str,
        file_type: str,
        project_id: str,
        content: str = "",
        **fields: Any,
    ) -> dict[str, Any]:
        self.calls.append(
            ("create_file", {"name": name, "file_type": file_type, "project_id": project_id, **fields})
        )
        if project_id not in self.projects:
            raise CommandError(f"Project '{project_id}' does not exist", command="create_file")
        record = {
            "id": self._next_id("file"),
            "name": name,
            "type": file_type,
            "project_id": project_id,
            "content": content,
            "created_at": utc_now().isoformat(),
            **fields,
        }
        self.files[record["id"]] = record
        return dict(record)

    async def store_message(
        self,
        role: str,
        content: str,
        session_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        message_id = self._next_id("message")
        self.messages.append(
            {"id": message_id, "role": role, "content": content, "session_id": session_id, "metadata": metadata or {}}
        )
        return message_id

    async def get_all_files(self) -> list[dict[str, Any]]:
        return [dict(f) for f in self.files.values()]

    async def get_projects(self) -> list[dict[str, Any]]:
        return [dict(p) for p in self.projects.values()]

    async def schedule_post(self, file_id: str, scheduled_for: datetime) -> dict[str, Any]:
        self.calls.append(("schedule_post", {"file_id": file_id, "scheduled_for": scheduled_for}))
        record = self.files.get(file_id)
        if record is None:
            raise CommandError(f"File '{file_id}' does not exist", command="schedule_post")
        record["post_status"] = "scheduled"
        record["scheduled_at"] = scheduled_for.isoformat()
        return dict(record)


class HttpCommandInterface(CommandInterface):
    """Remote backend. POST {base_url}/commands/{name} with a JSON body."""

    def __init__(
        self,
        base_url: str,
        auth_token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.headers = {"Content-Type": "application/json"}
        if auth_token:
            self.headers["Authorization"] = f"Bearer {auth_token}"

    async def _call(self, command: str, payload: dict[str, Any]) -> Any:
        url = f"{self.base_url}/commands/{command}"
        try:
            logger.debug("Calling backend command: %s", url)
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json=payload, headers=self.headers)
        except httpx.RequestError as e:
            logger.error("Network error calling backend '%s': %r", url, e)
            raise CommandError(f"Network error calling '{command}': {e}", command=command, url=url) from e

        if response.status_code >= 400:
            logger.error("Backend error %s on %s: %s", response.status_code, command, response.text)
            raise CommandError(
                f"Backend returned status {response.status_code} for '{command}'",
                command=command,
                status_code=response.status_code,
                body=response.text,
            )
        try:
            return response.json()
        except ValueError as e:
            raise CommandError(f"Backend returned invalid JSON for '{command}'", command=command) from e

    async def create_project(self, name: str, description: str = "", status: str = "active") -> dict[str, Any]:
        return await self._call("create_project", {"name": name, "description": description, "status": status})

    async def create_file(
        self,
        name: str,
        file_type: str,
        project_id: str,
        content: str = "",
        **fields: Any,
    ) -> dict[str, Any]:
        payload = {"name": name, "type": file_type, "project_id": project_id, "content": content, **fields}
        return await self._call("create_file", payload)

    async def store_message(
        self,
        role: str,
        content: str,
        session_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        data = await self._call(
            "store_message",
            {"role": role, "content": content, "session_id": session_id, "metadata": metadata or {}},
        )
        if isinstance(data, dict):
            return str(data.get("id", ""))
        return str(data)

    async def get_all_files(self) -> list[dict[str, Any]]:
        data = await self._call("get_all_files", {})
        return list(data) if isinstance(data, list) else []

    async def get_projects(self) -> list[dict[str, Any]]:
        data = await self._call("get_projects", {})
        return list(data) if isinstance(data, list) else []

    async def schedule_post(self, file_id: str, scheduled_for: datetime) -> dict[str, Any]:
        return await self._call(
            "schedule_post",
            {"file_id": file_id, "scheduled_for": scheduled_for.isoformat()},
        )
