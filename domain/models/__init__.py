from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Sequence, Union

from domain.errors import InvalidTransitionError


# -- page elements and discovery ---------------------------------------------


@dataclass(frozen=True)
class ElementLayout:
    """Rendered geometry, computed style and live properties of one node.

    Only used to decide visibility and interactivity; the core never
    writes any of these values back to the page.
    """

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    display: str = "block"
    visibility: str = "visible"
    opacity: float = 1.0
    pointer_events: str = "auto"
    position: str = "static"
    has_offset_parent: bool = True
    disabled: bool = False
    read_only: bool = False
    required: bool = False
    value: str = ""
    has_click_handler: bool = False

    @property
    def top(self) -> float:
        return self.y

    @property
    def left(self) -> float:
        return self.x

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def right(self) -> float:
        return self.x + self.width

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ElementLayout":
        return cls(
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            width=float(data.get("width", 0.0)),
            height=float(data.get("height", 0.0)),
            display=str(data.get("display", "block")),
            visibility=str(data.get("visibility", "visible")),
            opacity=float(data.get("opacity", 1.0)),
            pointer_events=str(data.get("pointer_events", "auto")),
            position=str(data.get("position", "static")),
            has_offset_parent=bool(data.get("has_offset_parent", True)),
            disabled=bool(data.get("disabled", False)),
            read_only=bool(data.get("read_only", False)),
            required=bool(data.get("required", False)),
            value=str(data.get("value") or ""),
            has_click_handler=bool(data.get("has_click_handler", False)),
        )


class LabelSource(str, Enum):
    """Label tiers in descending precedence."""

    ACCESSIBLE_NAME = "accessible-name"
    LABEL_FOR = "label-for"
    PLACEHOLDER = "placeholder"
    DESCRIBED_BY = "described-by"
    SIBLING = "sibling"
    CONTAINER = "container"
    SECTION_HEADING = "section-heading"


@dataclass(frozen=True)
class LabelCandidate:
    source: LabelSource
    text: str


class FieldKind(str, Enum):
    INPUT = "input"
    SELECT = "select"
    TEXTAREA = "textarea"
    BUTTON = "button"
    CUSTOM = "custom"


@dataclass(frozen=True)
class FieldDescriptor:
    """
    One discovered page element.

    Built fresh on every discovery pass and never mutated. ``css_path`` is a
    stable locator the filler can hand back to the page host; for custom
    widgets ``target_path`` points at the nested native input when one exists.
    """

    kind: FieldKind
    tag: str
    input_type: str | None
    element_id: str | None
    name: str | None
    labels: tuple[LabelCandidate, ...]
    layout: ElementLayout
    visible: bool
    interactive: bool
    disabled: bool
    required: bool
    css_path: str
    node_index: int
    role: str | None = None
    value: str = ""
    target_path: str | None = None
    data_attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", tuple(self.labels))
        object.__setattr__(
            self, "data_attributes", MappingProxyType(dict(self.data_attributes))
        )

    @property
    def identity(self) -> tuple[str, str | None, str | None]:
        return (self.tag, self.element_id, self.name)

    @property
    def best_label(self) -> str | None:
        return self.labels[0].text if self.labels else None

    @property
    def key(self) -> str:
        return self.element_id or self.name or self.css_path

    def label_from(self, source: LabelSource) -> str | None:
        for candidate in self.labels:
            if candidate.source is source:
                return candidate.text
        return None


@dataclass(frozen=True)
class FormSection:
    title: str
    fields: tuple[FieldDescriptor, ...]
    container_path: str | None = None


@dataclass(frozen=True)
class FormContext:
    """Discovery result for one page."""

    page_url: str
    page_title: str
    form_path: str | None
    all_fields: tuple[FieldDescriptor, ...]
    inputs: tuple[FieldDescriptor, ...] = ()
    selects: tuple[FieldDescriptor, ...] = ()
    textareas: tuple[FieldDescriptor, ...] = ()
    buttons: tuple[FieldDescriptor, ...] = ()
    custom_widgets: tuple[FieldDescriptor, ...] = ()
    sections: tuple[FormSection, ...] = ()

    @property
    def fillable_fields(self) -> tuple[FieldDescriptor, ...]:
        return tuple(f for f in self.all_fields if f.kind is not FieldKind.BUTTON)

    def label_map(self) -> dict[str, str]:
        mapping: dict[str, str] = {}
        for item in self.fillable_fields:
            label = item.best_label
            if label:
                mapping[item.key] = label
        return mapping

    def describe(self) -> str:
        """Plain-text rendering of the fields for downstream consumers."""
        fields = self.fillable_fields
        lines = [
            f"Page: {self.page_title}",
            f"URL: {self.page_url}",
            "",
            f"Found {len(fields)} form fields:",
            "",
        ]
        section_by_path = {
            f.css_path: s.title for s in self.sections for f in s.fields
        }
        for index, item in enumerate(fields):
            head = f"[{index}] {item.tag}"
            if item.input_type:
                head += f'[type="{item.input_type}"]'
            if item.element_id:
                head += f"#{item.element_id}"
            if item.name:
                head += f' name="{item.name}"'
            lines.append(head)
            if item.labels:
                rendered = ", ".join(
                    f'{c.source.value}: "{c.text}"' for c in item.labels[:3]
                )
                lines.append(f"   Labels: {rendered}")
            section = section_by_path.get(item.css_path)
            if section:
                lines.append(f"   Section: {section}")
            lines.append(f"   Required: {str(item.required).lower()}")
            lines.append("")
        return "\n".join(lines)


class FieldType(str, Enum):
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    FULL_NAME = "full_name"
    EMAIL = "email"
    PHONE = "phone"
    ADDRESS = "address"
    CITY = "city"
    STATE = "state"
    ZIP_CODE = "zip_code"
    COUNTRY = "country"
    LINKEDIN = "linkedin"
    GITHUB = "github"
    PORTFOLIO = "portfolio"
    UNIVERSITY = "university"
    DEGREE = "degree"
    MAJOR = "major"
    GPA = "gpa"
    GRADUATION_DATE = "graduation_date"
    WORK_AUTHORIZATION = "work_authorization"
    YEARS_OF_EXPERIENCE = "years_of_experience"
    RESUME = "resume"
    COVER_LETTER = "cover_letter"
    OPEN_ENDED = "open_ended"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class FieldTypeMatch:
    field_type: FieldType
    confidence: float


# -- tabs and sessions --------------------------------------------------------


class TabStatus(str, Enum):
    LOADING = "loading"
    COMPLETE = "complete"


@dataclass(frozen=True)
class TabInfo:
    """Snapshot of a host tab."""

    tab_id: int
    url: str
    title: str = ""
    window_id: int = 0
    active: bool = False
    status: TabStatus = TabStatus.COMPLETE
    opener_tab_id: int | None = None
    created_at: datetime | None = None


class TabEventKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    ACTIVATED = "activated"
    REMOVED = "removed"


@dataclass(frozen=True)
class TabEvent:
    """Lifecycle event delivered by the tab host."""

    kind: TabEventKind
    tab_id: int
    tab: TabInfo | None = None
    window_id: int | None = None


class TabPurpose(str, Enum):
    OAUTH = "oauth"
    EXTERNAL_FORM = "external-form"
    DOCUMENT_UPLOAD = "document-upload"
    VERIFICATION = "verification"
    UNKNOWN = "unknown"


class TabSessionState(str, Enum):
    ACTIVE = "active"
    WAITING = "waiting"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_TAB_STATES


_TERMINAL_TAB_STATES = frozenset(
    {TabSessionState.COMPLETED, TabSessionState.FAILED, TabSessionState.CANCELLED}
)


@dataclass
class TabSession:
    """
    One automation episode spanning possibly several tabs.

    The origin tab id is fixed at construction; only its snapshot may be
    refreshed. State changes go through ``transition`` which refuses to
    leave a terminal state.
    """

    id: str
    origin_tab: TabInfo
    purpose: TabPurpose
    started_at: datetime
    timeout_seconds: float
    auto_close: bool = True
    auto_return: bool = True
    state: TabSessionState = TabSessionState.ACTIVE
    child_tabs: list[TabInfo] = field(default_factory=list)
    completed_at: datetime | None = None
    failure_reason: str | None = None
    provider: str | None = None

    @property
    def origin_tab_id(self) -> int:
        return self.origin_tab.tab_id

    @property
    def is_live(self) -> bool:
        return not self.state.is_terminal

    def tab_ids(self) -> list[int]:
        return [self.origin_tab.tab_id] + [t.tab_id for t in self.child_tabs]

    def child(self, tab_id: int) -> TabInfo | None:
        for tab in self.child_tabs:
            if tab.tab_id == tab_id:
                return tab
        return None

    def refresh_tab(self, tab: TabInfo) -> None:
        if tab.tab_id == self.origin_tab.tab_id:
            self.origin_tab = tab
            return
        for index, existing in enumerate(self.child_tabs):
            if existing.tab_id == tab.tab_id:
                self.child_tabs[index] = tab
                return

    def remove_child(self, tab_id: int) -> None:
        self.child_tabs = [t for t in self.child_tabs if t.tab_id != tab_id]

    def transition(
        self,
        new_state: TabSessionState,
        *,
        at: datetime | None = None,
        reason: str | None = None,
    ) -> None:
        if self.state.is_terminal:
            raise InvalidTransitionError("TabSession", self.state.value, new_state.value)
        self.state = new_state
        if new_state.is_terminal:
            self.completed_at = at
            if reason is not None:
                self.failure_reason = reason


class TabSessionEventType(str, Enum):
    SESSION_STARTED = "session-started"
    TAB_OPENED = "tab-opened"
    TAB_CLOSED = "tab-closed"
    TAB_NAVIGATED = "tab-navigated"
    OAUTH_DETECTED = "oauth-detected"
    OAUTH_SUCCESS = "oauth-success"
    OAUTH_FAILED = "oauth-failed"
    SESSION_COMPLETED = "session-completed"
    SESSION_FAILED = "session-failed"
    SESSION_CANCELLED = "session-cancelled"
    SESSION_TIMEOUT = "session-timeout"


@dataclass(frozen=True)
class TabSessionEvent:
    type: TabSessionEventType
    session_id: str
    state: TabSessionState
    data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))


@dataclass(frozen=True)
class OAuthProvider:
    name: str
    url_patterns: tuple[str, ...]
    success_patterns: tuple[str, ...]
    failure_patterns: tuple[str, ...]
    timeout_seconds: float = 120.0


@dataclass(frozen=True)
class AtsSystem:
    name: str
    patterns: tuple[str, ...]


@dataclass(frozen=True)
class OAuthFlowResult:
    success: bool
    session_id: str | None = None
    provider: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class TabCoordinatorSettings:
    default_timeout_seconds: float = 300.0
    oauth_timeout_seconds: float = 120.0
    poll_interval_seconds: float = 0.5
    auto_close_on_success: bool = True
    return_to_origin: bool = True
    max_child_tabs: int = 5
    retention_seconds: float = 300.0
    new_tab_timeout_seconds: float = 10.0


# -- challenges ---------------------------------------------------------------


class ChallengeType(str, Enum):
    RECAPTCHA_V2 = "recaptcha-v2"
    RECAPTCHA_V3 = "recaptcha-v3"
    HCAPTCHA = "hcaptcha"
    TURNSTILE = "cloudflare-turnstile"
    FUNCAPTCHA = "funcaptcha"
    TEXT = "text-captcha"
    IMAGE = "image-captcha"


class ChallengeStatus(str, Enum):
    DETECTED = "detected"
    SOLVING = "solving"
    WAITING_FOR_HUMAN = "waiting-for-human"
    SOLVED = "solved"
    FAILED = "failed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_CHALLENGE_STATES


_TERMINAL_CHALLENGE_STATES = frozenset(
    {ChallengeStatus.SOLVED, ChallengeStatus.FAILED, ChallengeStatus.EXPIRED}
)

_CHALLENGE_TRANSITIONS: dict[ChallengeStatus, frozenset[ChallengeStatus]] = {
    ChallengeStatus.DETECTED: frozenset(
        {
            ChallengeStatus.SOLVING,
            ChallengeStatus.WAITING_FOR_HUMAN,
            ChallengeStatus.SOLVED,
            ChallengeStatus.FAILED,
        }
    ),
    ChallengeStatus.SOLVING: frozenset({ChallengeStatus.SOLVED, ChallengeStatus.FAILED}),
    ChallengeStatus.WAITING_FOR_HUMAN: frozenset(
        {ChallengeStatus.SOLVED, ChallengeStatus.EXPIRED}
    ),
}


@dataclass
class ChallengeInfo:
    """One detected obstacle instance and its resolution progress."""

    id: str
    type: ChallengeType
    page_url: str
    detected_at: datetime
    site_key: str | None = None
    element_path: str | None = None
    frame_url: str | None = None
    status: ChallengeStatus = ChallengeStatus.DETECTED
    solved_at: datetime | None = None
    token: str | None = None
    failure_reason: str | None = None

    def transition(
        self,
        new_status: ChallengeStatus,
        *,
        at: datetime | None = None,
        reason: str | None = None,
        token: str | None = None,
    ) -> None:
        allowed = _CHALLENGE_TRANSITIONS.get(self.status, frozenset())
        if new_status not in allowed:
            raise InvalidTransitionError("ChallengeInfo", self.status.value, new_status.value)
        self.status = new_status
        if new_status is ChallengeStatus.SOLVED:
            self.solved_at = at
            if token is not None:
                self.token = token
        if reason is not None:
            self.failure_reason = reason


@dataclass(frozen=True)
class ChallengeSession:
    """A site that was already cleared, valid until ``expires_at``."""

    domain: str
    solved_at: datetime
    expires_at: datetime
    challenge_type: ChallengeType

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class TokenInjection:
    """Request for the page host to place a solved token into the page."""

    challenge_type: ChallengeType
    token: str
    element_path: str | None = None


@dataclass(frozen=True)
class SolveOutcome:
    success: bool
    token: str | None = None
    error: str | None = None
    task_id: str | None = None
    elapsed_seconds: float = 0.0


class ResolutionMethod(str, Enum):
    NONE = "none"
    CACHED_SESSION = "cached-session"
    AUTO_SOLVE = "auto-solve"
    HUMAN = "human"


@dataclass(frozen=True)
class ResolutionOutcome:
    """Structured result of obstacle handling; failures are never raised."""

    success: bool
    method: ResolutionMethod
    challenge: ChallengeInfo | None = None
    error: str | None = None


class ResolverEventType(str, Enum):
    DETECTED = "detected"
    SOLVING = "solving"
    SOLVED = "solved"
    FAILED = "failed"
    WAITING_USER = "waiting-user"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ResolverEvent:
    type: ResolverEventType
    challenge_id: str
    challenge_type: ChallengeType
    message: str | None = None


@dataclass(frozen=True)
class CaptchaSettings:
    enabled: bool = True
    auto_solve: bool = False
    solver: str | None = None
    pause_on_detection: bool = True
    notify_user: bool = True
    session_persistence: bool = True
    session_duration_hours: float = 24.0
    human_max_wait_seconds: float = 300.0
    human_poll_interval_seconds: float = 1.0
    watch_interval_seconds: float = 1.0


# -- solver backends ------------------------------------------------------------


@dataclass(frozen=True)
class TwoCaptchaBackend:
    api_key: str
    timeout_seconds: float = 120.0
    poll_interval_seconds: float = 5.0
    soft_id: str | None = None

    name = "2captcha"


@dataclass(frozen=True)
class AntiCaptchaBackend:
    api_key: str
    timeout_seconds: float = 120.0
    poll_interval_seconds: float = 5.0

    name = "anti-captcha"


@dataclass(frozen=True)
class CapSolverBackend:
    api_key: str
    timeout_seconds: float = 120.0
    poll_interval_seconds: float = 3.0
    app_id: str | None = None

    name = "capsolver"


SolverBackend = Union[TwoCaptchaBackend, AntiCaptchaBackend, CapSolverBackend]

SOLVER_BACKENDS: Mapping[str, type] = MappingProxyType(
    {
        TwoCaptchaBackend.name: TwoCaptchaBackend,
        AntiCaptchaBackend.name: AntiCaptchaBackend,
        CapSolverBackend.name: CapSolverBackend,
    }
)


@dataclass(frozen=True)
class SolverCredential:
    """Stored API key and polling budget for one solving backend."""

    backend: str
    api_key: str
    updated_at: datetime
    timeout_seconds: float = 120.0
    poll_interval_seconds: float = 5.0

    def to_backend(self) -> SolverBackend:
        return build_solver_backend(
            self.backend,
            api_key=self.api_key,
            timeout_seconds=self.timeout_seconds,
            poll_interval_seconds=self.poll_interval_seconds,
        )


def build_solver_backend(name: str, **options: Any) -> SolverBackend:
    backend_cls = SOLVER_BACKENDS.get(name)
    if backend_cls is None:
        raise ValueError(
            f"Unknown solver backend {name!r}; expected one of {', '.join(SOLVER_BACKENDS)}"
        )
    return backend_cls(**options)


# -- attempts, config, runs ----------------------------------------------------


@dataclass(frozen=True)
class JobPostingRef:
    """Lightweight reference to a job posting being applied to."""

    company_name: str
    job_title: str
    job_url: str


@dataclass(frozen=True)
class FillReport:
    """What the external filler managed to do with a ``FormContext``."""

    filled: Sequence[str] = field(default_factory=tuple)
    unfilled_required: Sequence[str] = field(default_factory=tuple)
    opened_tabs: bool = False


class AttemptStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass(frozen=True)
class AttemptOutcome:
    job: JobPostingRef
    status: AttemptStatus
    reason: str | None = None
    fields_discovered: int = 0
    fill_report: FillReport | None = None
    challenge: ResolutionOutcome | None = None
    tab_session_state: TabSessionState | None = None
    run_id: str | None = None


@dataclass(frozen=True)
class RunContext:
    """
    Per-run context for an automation attempt and its debug artifacts.

    The log directory is an abstract path; infra decides how it maps
    to the real filesystem.
    """

    run_id: str
    is_debug: bool = False
    log_directory: str | None = None


@dataclass(frozen=True)
class NotificationSettings:
    channel: str = "console"
    bot_token: str | None = None
    chat_id: str | None = None


@dataclass(frozen=True)
class AppConfig:
    """Application-level configuration loaded from config.json."""

    captcha: CaptchaSettings = field(default_factory=CaptchaSettings)
    tabs: TabCoordinatorSettings = field(default_factory=TabCoordinatorSettings)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    solvers: Mapping[str, SolverBackend] = field(default_factory=dict)
    custom_widget_signatures: Mapping[str, Sequence[str]] = field(default_factory=dict)
    db_path: str = "applyflow.db"
    debug_mode: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "solvers", MappingProxyType(dict(self.solvers)))
        object.__setattr__(
            self,
            "custom_widget_signatures",
            MappingProxyType(
                {k: tuple(v) for k, v in self.custom_widget_signatures.items()}
            ),
        )


__all__ = [
    "ElementLayout",
    "LabelSource",
    "LabelCandidate",
    "FieldKind",
    "FieldDescriptor",
    "FormSection",
    "FormContext",
    "FieldType",
    "FieldTypeMatch",
    "TabStatus",
    "TabInfo",
    "TabEventKind",
    "TabEvent",
    "TabPurpose",
    "TabSessionState",
    "TabSession",
    "TabSessionEventType",
    "TabSessionEvent",
    "OAuthProvider",
    "AtsSystem",
    "OAuthFlowResult",
    "TabCoordinatorSettings",
    "ChallengeType",
    "ChallengeStatus",
    "ChallengeInfo",
    "ChallengeSession",
    "TokenInjection",
    "SolveOutcome",
    "ResolutionMethod",
    "ResolutionOutcome",
    "ResolverEventType",
    "ResolverEvent",
    "CaptchaSettings",
    "TwoCaptchaBackend",
    "AntiCaptchaBackend",
    "CapSolverBackend",
    "SolverBackend",
    "SOLVER_BACKENDS",
    "SolverCredential",
    "build_solver_backend",
    "JobPostingRef",
    "FillReport",
    "AttemptStatus",
    "AttemptOutcome",
    "RunContext",
    "NotificationSettings",
    "AppConfig",
]
