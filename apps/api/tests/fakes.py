"""In-memory stand-ins for the Stytch, Jira and AI adapters."""

from datetime import datetime, timedelta, timezone

from app.services.ai_provider import AIProvider, ChatMessage, ChatResponse
from app.services.jira_service import (
    IssueTracker,
    JiraDiagnosis,
    JiraError,
    JiraIssueType,
    JiraProject,
    RemoteIssue,
)
from app.services.stytch_service import (
    IdentityProvider,
    InvalidTokenError,
    MemberDetails,
    MemberNotFoundError,
    OrganizationDetails,
    OrganizationMember,
    VerifiedIdentity,
)


class FakeIdentityProvider(IdentityProvider):
    """In-memory Stytch stand-in keyed by token."""

    def __init__(self):
        self.sessions: dict[str, VerifiedIdentity] = {}
        self.members: dict[str, MemberDetails] = {}
        self.organizations: dict[str, OrganizationDetails] = {}
        self.revoked: list[str] = []
        self.directory: dict[str, OrganizationMember] = {}
        self.invited: list[dict] = []
        self.directory_error: Exception | None = None

    def add_session(
        self,
        token: str,
        member_id: str,
        organization_id: str | None,
        *,
        expires_in: timedelta = timedelta(hours=1),
        name: str | None = None,
        email: str | None = None,
    ) -> None:
        self.sessions[token] = VerifiedIdentity(
            member_id=member_id,
            organization_id=organization_id,
            session_id=f"session-{token}",
            expires_at=datetime.now(timezone.utc) + expires_in,
            name=name,
            email=email,
        )

    async def verify(self, token: str) -> VerifiedIdentity:
        if token not in self.sessions:
            raise InvalidTokenError("unknown token")
        return self.sessions[token]

    async def lookup_member_details(self, organization_id: str, member_id: str) -> MemberDetails:
        if member_id not in self.members:
            raise MemberNotFoundError(member_id)
        return self.members[member_id]

    async def lookup_organization(self, organization_id: str) -> OrganizationDetails:
        if organization_id not in self.organizations:
            raise MemberNotFoundError(organization_id)
        return self.organizations[organization_id]

    async def revoke_session(self, token: str) -> None:
        self.revoked.append(token)

    async def search_members(self, organization_id: str, email_query: str) -> list[OrganizationMember]:
        members = await self.list_members(organization_id)
        return [m for m in members if email_query.lower() in m.email.lower()]

    async def list_members(self, organization_id: str, *, limit: int = 500) -> list[OrganizationMember]:
        if self.directory_error is not None:
            raise self.directory_error
        return list(self.directory.values())[:limit]

    async def invite_member(self, organization_id, email, *, name=None, redirect_url=None) -> OrganizationMember:
        if self.directory_error is not None:
            raise self.directory_error
        self.invited.append({
            "organization_id": organization_id,
            "email": email,
            "name": name,
            "redirect_url": redirect_url,
        })
        member = OrganizationMember(
            member_id=f"member-invited-{len(self.invited)}", email=email, name=name, status="invited"
        )
        self.directory[member.member_id] = member
        return member


class FakeIssueTracker(IssueTracker):
    """Records create_issue calls; set ``fail`` to make the next creates raise."""

    def __init__(self):
        self.created: list[dict] = []
        self.fail = False
        self.issue_types = [
            JiraIssueType(id="10001", name="Task"),
            JiraIssueType(id="10002", name="Bug"),
        ]

    async def create_issue(self, *, project_key, summary, description, issue_type_id, priority_id=None):
        self.created.append({
            "project_key": project_key,
            "summary": summary,
            "description": description,
            "issue_type_id": issue_type_id,
            "priority_id": priority_id,
        })
        if self.fail:
            raise JiraError("Failed to create Jira issue: project is archived")
        key = f"{project_key}-{len(self.created)}"
        return RemoteIssue(key=key, id=str(len(self.created)), url=f"https://jira.test/browse/{key}")

    async def list_projects(self) -> list[JiraProject]:
        return [JiraProject(id="1", key="SUP", name="Support")]

    async def list_issue_types(self, project_key: str) -> list[JiraIssueType]:
        return list(self.issue_types)

    async def diagnose(self, project_key: str) -> JiraDiagnosis:
        return JiraDiagnosis(can_connect=True, has_project_access=project_key == "SUP")


class FakeAIProvider(AIProvider):
    """Returns a canned reply, or raises ``error`` when set."""

    def __init__(self, reply: str = "", error: Exception | None = None):
        super().__init__("test-key", "test-model")
        self.reply = reply
        self.error = error
        self.prompts: list[list[ChatMessage]] = []

    async def chat(self, messages, model=None, temperature=0.3, max_tokens=2000) -> ChatResponse:
        self.prompts.append(messages)
        if self.error is not None:
            raise self.error
        return ChatResponse(content=self.reply, prompt_tokens=10, completion_tokens=20, model="test-model")

