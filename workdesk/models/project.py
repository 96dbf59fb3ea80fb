"""Project / task Pydantic models

Rows coming back from PostgREST are decoded leniently: missing or null
columns fall back to the same defaults the UI expects (status "To Do",
priority "medium", zero counters, "now" timestamps).
"""
from pydantic import AliasChoices, BaseModel, BeforeValidator, Field, model_validator
from typing import Annotated, Optional, List, Any
from datetime import date, datetime, timezone
from uuid import UUID

DEFAULT_TASK_STATUS = "To Do"
DEFAULT_TASK_PRIORITY = "medium"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _or(default: Any):
    return BeforeValidator(lambda v: default if v is None else v)


def _lenient_date(v: Any) -> Optional[date]:
    if v is None or isinstance(v, date):
        return v.date() if isinstance(v, datetime) else v
    if isinstance(v, str):
        try:
            return date.fromisoformat(v[:10])
        except ValueError:
            return None
    return None


def _timestamp_or_now(v: Any) -> Any:
    return _utcnow() if v is None else v


def _tags(v: Any) -> List[str]:
    # task_tags(tag) embeds arrive as [{"tag": "..."}]; keep non-empty strings only
    if not isinstance(v, list):
        return []
    tags = []
    for item in v:
        value = item.get("tag") if isinstance(item, dict) else item
        if isinstance(value, str) and value:
            tags.append(value)
    return tags


LenientDate = Annotated[Optional[date], BeforeValidator(_lenient_date)]
Timestamp = Annotated[datetime, BeforeValidator(_timestamp_or_now)]
Counter = Annotated[int, _or(0)]


class Project(BaseModel):
    """projects row"""
    id: Counter = 0
    name: Annotated[str, _or("")] = ""
    description: Optional[str] = None
    client: Optional[str] = None
    budget: Optional[float] = None
    due_date: LenientDate = None
    icon: Optional[str] = None
    icon_color: Optional[str] = None
    is_public: Annotated[bool, _or(False)] = False
    created_at: Timestamp = Field(default_factory=_utcnow)
    updated_at: Timestamp = Field(default_factory=_utcnow)


class Task(BaseModel):
    """tasks row, optionally with embedded task_tags(tag)"""
    id: Counter = 0
    project_id: Counter = 0
    title: Annotated[str, _or("")] = ""
    description: Optional[str] = None
    status: Annotated[str, _or(DEFAULT_TASK_STATUS)] = DEFAULT_TASK_STATUS
    priority: Annotated[str, _or(DEFAULT_TASK_PRIORITY)] = DEFAULT_TASK_PRIORITY
    start_date: LenientDate = None
    due_date: LenientDate = None
    assigned_count: Counter = 0
    comment_count: Counter = 0
    total_subtasks: Counter = 0
    completed_subtasks: Counter = 0
    created_at: Timestamp = Field(default_factory=_utcnow)
    updated_at: Timestamp = Field(default_factory=_utcnow)
    tags: Annotated[List[str], BeforeValidator(_tags)] = Field(
        default_factory=list, validation_alias=AliasChoices("task_tags", "tags")
    )


class ProjectWithTasks(Project):
    tasks: List[Task] = Field(default_factory=list)


class TaskComment(BaseModel):
    """task_comments row with the author's display name"""
    id: Counter = 0
    task_id: Counter = 0
    user_id: UUID = UUID(int=0)
    user_name: Optional[str] = None
    content: Annotated[str, _or("")] = ""
    created_at: Timestamp = Field(default_factory=_utcnow)

    @model_validator(mode="before")
    @classmethod
    def resolve_author(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not isinstance(data.get("user_id"), (str, UUID)):
            data.pop("user_id", None)

        member = data.pop("team_members", None)
        if isinstance(member, list):
            member = member[0] if member else None
        if isinstance(member, dict) and not data.get("user_name"):
            data["user_name"] = member.get("display_name")
        return data

    @model_validator(mode="after")
    def fallback_author(self) -> "TaskComment":
        if not self.user_name or not self.user_name.strip():
            self.user_name = placeholder_user_name(self.user_id)
        return self


def placeholder_user_name(user_id: UUID) -> str:
    """Name shown until the author's team_members row is joined in"""
    return f"User {str(user_id)[:8]}"


class CreateProjectRequest(BaseModel):
    """Create a new project"""
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    client: Optional[str] = None
    budget: Optional[float] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    icon: Optional[str] = None
    color_theme: Optional[str] = None
    is_public: bool = False


class CreateTaskRequest(BaseModel):
    """Create a task inside a project"""
    project_id: int
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None


class UpdateTaskRequest(BaseModel):
    """Replace the editable task fields"""
    title: str = ""
    description: Optional[str] = None
    status: str = ""
    priority: str = ""
    start_date: Optional[date] = None
    due_date: Optional[date] = None


class TaskCommentCreate(BaseModel):
    content: str = Field(..., min_length=1)
