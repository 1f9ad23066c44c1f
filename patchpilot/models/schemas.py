from enum import Enum
import re
from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field

_PULL_PATH_RE = re.compile(r"/pull/\d+/?$")


class SessionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PATCH_FOUND = "patch_found"
    TESTS_RUNNING = "tests_running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED)


class PipelineStep(str, Enum):
    FETCHING_ISSUE = "fetching_issue"
    CLONING = "cloning"
    INSTALLING = "installing"
    ANALYZING = "analyzing"
    SEARCHING = "searching"
    GENERATING_PATCH = "generating_patch"
    TESTING = "testing"
    FINALIZING = "finalizing"
    READY = "ready"
    CREATING_PR = "creating_pr"
    PR_CREATED = "pr_created"
    PR_PROPOSED = "pr_proposed"


# Forward order used by the step reporter; FAILED is handled separately.
STATUS_ORDER = [
    SessionStatus.PENDING,
    SessionStatus.RUNNING,
    SessionStatus.PATCH_FOUND,
    SessionStatus.TESTS_RUNNING,
    SessionStatus.COMPLETED,
]

STEP_ORDER = list(PipelineStep)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SessionUpdate(_CamelModel):
    """Partial update applied to a persisted session.

    Absent fields are left unchanged; ``logs_append`` is concatenated onto the
    existing log text rather than replacing it.
    """
    status: Optional[SessionStatus] = None
    step: Optional[PipelineStep] = None
    logs_append: Optional[str] = Field(default=None, alias="logsAppend")
    patch_diff: Optional[str] = Field(default=None, alias="patchDiff")
    pr_url: Optional[str] = Field(default=None, alias="prUrl")
    error_message: Optional[str] = Field(default=None, alias="errorMessage")

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PipelineRequest(_CamelModel):
    session_id: str = Field(alias="sessionId")
    repo_url: str = Field(alias="repoUrl")
    branch: str = "main"
    bug_description: str = Field(alias="bugDescription")
    repro_command: str = Field(alias="reproCommand")
    skip_tests: bool = Field(default=False, alias="skipTests")
    backend_base_url: str = Field(default="http://localhost:3000", alias="backendBaseUrl")


class SessionSnapshot(_CamelModel):
    """What the record-keeping layer knows about a session when PR creation is triggered."""
    session_id: str = Field(alias="sessionId")
    repo_url: str = Field(alias="repoUrl")
    branch: str = "main"
    bug_description: str = Field(alias="bugDescription")
    status: SessionStatus
    pr_url: Optional[str] = Field(default=None, alias="prUrl")
    backend_base_url: str = Field(default="http://localhost:3000", alias="backendBaseUrl")

    @property
    def has_real_pr(self) -> bool:
        """A submitted pull request: URL path ends in ``/pull/<number>``."""
        if not self.pr_url or self.has_provisional_pr:
            return False
        return bool(_PULL_PATH_RE.search(urlsplit(self.pr_url).path))

    @property
    def has_provisional_pr(self) -> bool:
        return bool(self.pr_url) and "/compare/" in urlsplit(self.pr_url).path


class PatchFile(BaseModel):
    path: str
    content: str


class SearchResult(BaseModel):
    title: str = ""
    url: str = ""
    text: str = ""
    score: Optional[float] = None


class VerificationResult(BaseModel):
    passed: bool
    exit_code: Optional[int] = None
    output: str = ""
    excerpt: list[str] = Field(default_factory=list)
    skipped: bool = False
    timed_out: bool = False


class SubmissionResult(BaseModel):
    pr_url: str
    provisional: bool
    pr_number: Optional[int] = None


class TokenUsage(BaseModel):
    agent_name: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
