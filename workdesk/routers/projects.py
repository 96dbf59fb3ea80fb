"""Project and task endpoints"""
from fastapi import APIRouter, HTTPException, Depends
from typing import Dict, List
from uuid import UUID
import logging

from workdesk.dependencies import get_projects_service
from workdesk.middleware.auth import get_current_user
from workdesk.models.project import (
    CreateProjectRequest,
    CreateTaskRequest,
    Project,
    ProjectWithTasks,
    Task,
    TaskComment,
    TaskCommentCreate,
    UpdateTaskRequest,
)
from workdesk.services.projects_service import ProjectsService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[Project])
async def list_projects(
    auth_data: Dict = Depends(get_current_user),
    projects: ProjectsService = Depends(get_projects_service)
):
    """List projects visible to the user, newest first"""
    return await projects.get_projects(auth_data["raw_token"])


@router.get("/with-tasks", response_model=List[ProjectWithTasks])
async def list_projects_with_tasks(
    auth_data: Dict = Depends(get_current_user),
    projects: ProjectsService = Depends(get_projects_service)
):
    return await projects.get_all_projects_with_tasks(auth_data["raw_token"])


@router.post("", response_model=Project)
async def create_project(
    request: CreateProjectRequest,
    auth_data: Dict = Depends(get_current_user),
    projects: ProjectsService = Depends(get_projects_service)
):
    return await projects.create_project(request, auth_data["raw_token"])


@router.get("/{project_id}", response_model=ProjectWithTasks)
async def get_project(
    project_id: int,
    auth_data: Dict = Depends(get_current_user),
    projects: ProjectsService = Depends(get_projects_service)
):
    """Get a project with its tasks"""
    project = await projects.get_project_with_tasks(project_id, auth_data["raw_token"])
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.delete("/{project_id}")
async def delete_project(
    project_id: int,
    auth_data: Dict = Depends(get_current_user),
    projects: ProjectsService = Depends(get_projects_service)
):
    await projects.delete_project(project_id, auth_data["raw_token"])
    return {"success": True}


@router.post("/tasks", response_model=Task)
async def create_task(
    request: CreateTaskRequest,
    auth_data: Dict = Depends(get_current_user),
    projects: ProjectsService = Depends(get_projects_service)
):
    return await projects.create_task(request, auth_data["raw_token"])


@router.get("/tasks/{task_id}", response_model=Task)
async def get_task(
    task_id: int,
    auth_data: Dict = Depends(get_current_user),
    projects: ProjectsService = Depends(get_projects_service)
):
    task = await projects.get_task_by_id(task_id, auth_data["raw_token"])
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.put("/tasks/{task_id}", response_model=Task)
async def update_task(
    task_id: int,
    request: UpdateTaskRequest,
    auth_data: Dict = Depends(get_current_user),
    projects: ProjectsService = Depends(get_projects_service)
):
    task = await projects.update_task(task_id, request, auth_data["raw_token"])
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: int,
    auth_data: Dict = Depends(get_current_user),
    projects: ProjectsService = Depends(get_projects_service)
):
    await projects.delete_task(task_id, auth_data["raw_token"])
    return {"success": True}


@router.get("/tasks/{task_id}/comments", response_model=List[TaskComment])
async def list_task_comments(
    task_id: int,
    auth_data: Dict = Depends(get_current_user),
    projects: ProjectsService = Depends(get_projects_service)
):
    return await projects.get_task_comments(task_id, auth_data["raw_token"])


@router.post("/tasks/{task_id}/comments", response_model=TaskComment)
async def create_task_comment(
    task_id: int,
    request: TaskCommentCreate,
    auth_data: Dict = Depends(get_current_user),
    projects: ProjectsService = Depends(get_projects_service)
):
    """Comment on a task as the signed-in user"""
    return await projects.create_task_comment(
        task_id, request.content, UUID(auth_data["user_id"]), auth_data["raw_token"]
    )
