"""Projects and tasks service"""
import asyncio
import logging
from typing import List, Optional
from uuid import UUID

from workdesk.database import DataApiClient, Embed, asc, desc, eq
from workdesk.errors import EmptyResult
from workdesk.models.project import (
    DEFAULT_TASK_PRIORITY,
    DEFAULT_TASK_STATUS,
    CreateProjectRequest,
    CreateTaskRequest,
    Project,
    ProjectWithTasks,
    Task,
    TaskComment,
    UpdateTaskRequest,
    placeholder_user_name,
)

logger = logging.getLogger(__name__)

TASK_TAGS = Embed("task_tags", ("tag",))
COMMENT_AUTHOR = Embed("team_members", ("display_name",), hint="task_comments_user_id_fkey")


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


class ProjectsService:
    """
    CRUD over projects / tasks / task_comments.

    Every call takes the signed-in user's access token so row-level security
    applies; without one the anon key is used.
    """

    def __init__(self, client: DataApiClient):
        self.client = client

    async def get_projects(
        self, access_token: Optional[str] = None, cancel: Optional[asyncio.Event] = None
    ) -> List[Project]:
        return await self.client.query(
            "projects",
            order=desc("created_at"),
            model=Project,
            access_token=access_token,
            cancel=cancel,
        )

    async def get_project_with_tasks(
        self,
        project_id: int,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Optional[ProjectWithTasks]:
        """
        Load one project and its tasks (with tags)

        Returns:
            The project, or None if it does not exist or is not visible
        """
        projects = await self.client.query(
            "projects",
            filters=[eq("id", project_id)],
            model=Project,
            access_token=access_token,
            cancel=cancel,
        )
        if not projects:
            return None

        tasks = await self.client.query(
            "tasks",
            filters=[eq("project_id", project_id)],
            embeds=[TASK_TAGS],
            order=asc("created_at"),
            model=Task,
            access_token=access_token,
            cancel=cancel,
        )
        return ProjectWithTasks(**projects[0].model_dump(), tasks=tasks)

    async def get_all_projects_with_tasks(
        self, access_token: Optional[str] = None, cancel: Optional[asyncio.Event] = None
    ) -> List[ProjectWithTasks]:
        projects = await self.get_projects(access_token, cancel=cancel)

        result = []
        for project in projects:
            with_tasks = await self.get_project_with_tasks(project.id, access_token, cancel=cancel)
            if with_tasks is not None:
                result.append(with_tasks)
        return result

    async def create_project(
        self,
        request: CreateProjectRequest,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Project:
        payload = {
            "name": request.name,
            "description": request.description,
            "client": request.client,
            "budget": request.budget,
            "due_date": _iso(request.end_date),
            "icon": request.icon,
            "icon_color": request.color_theme,
            "is_public": request.is_public,
        }
        rows = await self.client.insert(
            "projects", payload, model=Project, access_token=access_token, cancel=cancel
        )
        logger.info(f"Project created: {rows[0].id}")
        return rows[0]

    async def delete_project(
        self,
        project_id: int,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> bool:
        await self.client.delete(
            "projects", [eq("id", project_id)], access_token=access_token, cancel=cancel
        )
        logger.info(f"Project deleted: {project_id}")
        return True

    async def create_task(
        self,
        request: CreateTaskRequest,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Task:
        payload = {
            "project_id": request.project_id,
            "title": request.title,
            "description": request.description,
            "status": request.status or DEFAULT_TASK_STATUS,
            "priority": request.priority or DEFAULT_TASK_PRIORITY,
            "start_date": _iso(request.start_date),
            "due_date": _iso(request.due_date),
        }
        rows = await self.client.insert(
            "tasks", payload, model=Task, access_token=access_token, cancel=cancel
        )
        return rows[0]

    async def get_task_by_id(
        self,
        task_id: int,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Optional[Task]:
        tasks = await self.client.query(
            "tasks",
            filters=[eq("id", task_id)],
            embeds=[TASK_TAGS],
            model=Task,
            access_token=access_token,
            cancel=cancel,
        )
        return tasks[0] if tasks else None

    async def update_task(
        self,
        task_id: int,
        request: UpdateTaskRequest,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Optional[Task]:
        """Replace the editable fields; None when no visible task has that id"""
        patch = {
            "title": request.title,
            "description": request.description,
            "status": request.status,
            "priority": request.priority,
            "start_date": _iso(request.start_date),
            "due_date": _iso(request.due_date),
        }
        try:
            rows = await self.client.update(
                "tasks",
                [eq("id", task_id)],
                patch,
                return_representation=True,
                model=Task,
                access_token=access_token,
                cancel=cancel,
            )
        except EmptyResult:
            return None
        return rows[0]

    async def delete_task(
        self,
        task_id: int,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> bool:
        await self.client.delete(
            "tasks", [eq("id", task_id)], access_token=access_token, cancel=cancel
        )
        return True

    async def get_task_comments(
        self,
        task_id: int,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> List[TaskComment]:
        """Comments oldest first, each with the author's display name"""
        return await self.client.query(
            "task_comments",
            columns=("id", "task_id", "user_id", "content", "created_at"),
            filters=[eq("task_id", task_id)],
            embeds=[COMMENT_AUTHOR],
            order=asc("created_at"),
            model=TaskComment,
            access_token=access_token,
            cancel=cancel,
        )

    async def create_task_comment(
        self,
        task_id: int,
        content: str,
        user_id: UUID,
        access_token: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> TaskComment:
        """
        Add a comment to a task

        The insert response carries no team_members join, so the author name
        is a placeholder until the comment list is reloaded.
        """
        payload = {"task_id": task_id, "user_id": user_id, "content": content}
        rows = await self.client.insert(
            "task_comments", payload, model=TaskComment, access_token=access_token, cancel=cancel
        )
        comment = rows[0]
        return comment.model_copy(update={"user_name": placeholder_user_name(comment.user_id)})
