"""Jira Cloud REST v3 adapter used for issue escalation and diagnostics."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.core.config import Settings
from app.services.http_service import request_with_retries

logger = logging.getLogger(__name__)


class JiraError(Exception):
    """A Jira call failed. The message may contain vendor detail; log it, do not show it."""


@dataclass(frozen=True)
class RemoteIssue:
    key: str
    id: str
    url: str


@dataclass(frozen=True)
class JiraProject:
    id: str
    key: str
    name: str


@dataclass(frozen=True)
class JiraIssueType:
    id: str
    name: str
    description: str = ""
    subtask: bool = False


@dataclass
class JiraDiagnosis:
    can_connect: bool = False
    user_info: dict[str, Any] | None = None
    has_project_access: bool = False
    available_projects: list[str] = field(default_factory=list)
    can_create_issues: bool = False
    available_issue_types: list[JiraIssueType] = field(default_factory=list)
    error: str | None = None


class IssueTracker(ABC):
    """External issue tracker interface consumed by escalation."""

    @abstractmethod
    async def create_issue(
        self,
        *,
        project_key: str,
        summary: str,
        description: dict[str, Any],
        issue_type_id: str,
        priority_id: str | None = None,
    ) -> RemoteIssue:
        """Create a remote issue. Raises JiraError."""

    @abstractmethod
    async def list_projects(self) -> list[JiraProject]:
        ...

    @abstractmethod
    async def list_issue_types(self, project_key: str) -> list[JiraIssueType]:
        ...

    @abstractmethod
    async def diagnose(self, project_key: str) -> JiraDiagnosis:
        ...

    async def aclose(self) -> None:
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:500]}"
    messages = data.get("errorMessages") or []
    errors = data.get("errors") or {}
    parts = list(messages) + [f"{k}: {v}" for k, v in errors.items()]
    return ", ".join(parts) or f"HTTP {response.status_code}"


class JiraClient(IssueTracker):
    """Basic-auth (email + API token) client for {base_url}/rest/api/3."""

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        *,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/api/3",
            auth=(email, api_token),
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "JiraClient":
        return cls(
            settings.JIRA_BASE_URL,
            settings.JIRA_EMAIL,
            settings.JIRA_API_TOKEN,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def issue_url(self, key: str) -> str:
        return f"{self.base_url}/browse/{key}"

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await request_with_retries(
                lambda: self._client.request(method, path, **kwargs)
            )
        except httpx.RequestError as exc:
            raise JiraError(f"Jira unreachable: {exc}") from exc

    async def _get_json(self, path: str, **kwargs) -> Any:
        response = await self._request("GET", path, **kwargs)
        if response.status_code != 200:
            raise JiraError(f"GET {path} failed: {_error_message(response)}")
        return response.json()

    async def create_issue(
        self,
        *,
        project_key: str,
        summary: str,
        description: dict[str, Any],
        issue_type_id: str,
        priority_id: str | None = None,
    ) -> RemoteIssue:
        fields: dict[str, Any] = {
            "project": {"key": project_key},
            "summary": summary,
            "description": description,
            "issuetype": {"id": issue_type_id},
        }
        if priority_id:
            fields["priority"] = {"id": priority_id}

        # No retries on create: a retried POST can duplicate the remote issue
        try:
            response = await self._client.post("/issue", json={"fields": fields})
        except httpx.RequestError as exc:
            raise JiraError(f"Jira unreachable: {exc}") from exc
        if response.status_code not in (200, 201):
            raise JiraError(f"Failed to create Jira issue: {_error_message(response)}")

        try:
            data = response.json()
            key, remote_id = data["key"], str(data["id"])
        except (ValueError, KeyError, TypeError) as exc:
            raise JiraError(
                f"Unexpected Jira create response: {response.text[:500]}"
            ) from exc
        return RemoteIssue(key=key, id=remote_id, url=self.issue_url(key))

    async def list_projects(self) -> list[JiraProject]:
        data = await self._get_json("/project")
        return [
            JiraProject(id=str(p["id"]), key=p["key"], name=p.get("name", p["key"]))
            for p in data
        ]

    async def list_issue_types(self, project_key: str) -> list[JiraIssueType]:
        data = await self._get_json(
            "/issue/createmeta",
            params={"projectKeys": project_key, "expand": "projects.issuetypes"},
        )
        projects = data.get("projects") or []
        if not projects:
            raise JiraError(f"Project {project_key} not found or you don't have access to it")
        issue_types = projects[0].get("issuetypes") or []
        if not issue_types:
            raise JiraError(f"No issue types available for project {project_key}")
        return [
            JiraIssueType(
                id=str(it["id"]),
                name=it.get("name", ""),
                description=it.get("description") or "",
                subtask=bool(it.get("subtask", False)),
            )
            for it in issue_types
        ]

    async def diagnose(self, project_key: str) -> JiraDiagnosis:
        """Step through connectivity, project visibility and create permission."""
        diagnosis = JiraDiagnosis()
        try:
            me = await self._get_json("/myself")
        except JiraError as exc:
            diagnosis.error = str(exc)
            return diagnosis

        diagnosis.can_connect = True
        diagnosis.user_info = {
            "account_id": me.get("accountId"),
            "display_name": me.get("displayName"),
            "email_address": me.get("emailAddress"),
        }

        try:
            projects = await self.list_projects()
        except JiraError:
            diagnosis.error = "Cannot access projects list"
            return diagnosis
        diagnosis.available_projects = [f"{p.key}: {p.name}" for p in projects]
        diagnosis.has_project_access = any(p.key == project_key for p in projects)

        if diagnosis.has_project_access:
            try:
                diagnosis.available_issue_types = await self.list_issue_types(project_key)
                diagnosis.can_create_issues = bool(diagnosis.available_issue_types)
            except JiraError:
                diagnosis.error = f"Cannot access create metadata for project {project_key}"
        return diagnosis


def build_issue_tracker(settings: Settings) -> IssueTracker | None:
    if not settings.jira_configured:
        logger.info("Jira configuration incomplete; escalation disabled")
        return None
    return JiraClient.from_settings(settings)
