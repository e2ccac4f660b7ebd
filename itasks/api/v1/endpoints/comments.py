# itasks/api/v1/endpoints/comments.py
"""Comments and attachments on a task"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from itasks.db.database import get_db
from itasks.db import crud
from itasks.db.models import User
from itasks.api.v1.lookups import task_or_404, user_ids
from itasks.api.v1.schemas.comments import CommentCreate, CommentResponse, AttachmentResponse
from itasks.auth.dependencies import get_current_user, get_lifecycle_manager, get_attachment_storage
from itasks.core.lifecycle import TaskLifecycleManager
from itasks.exceptions.domain import NotFoundError
from itasks.integrations.storage import AttachmentStorage

router = APIRouter()


@router.get("/tasks/{task_id}/comments", response_model=List[CommentResponse])
async def list_comments(
        task_id: UUID,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    task = await task_or_404(db, task_id)
    return [CommentResponse.from_model(c) for c in await crud.task.list_task_comments(db, task.id)]


@router.post("/tasks/{task_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(
        task_id: UUID,
        comment_in: CommentCreate,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
        lifecycle: TaskLifecycleManager = Depends(get_lifecycle_manager),
):
    """Add a comment; ``@user@example.com`` tokens in the content become mentions"""
    task = await task_or_404(db, task_id)
    mentioned = await user_ids(db, comment_in.mentioned_user_ids)
    comment = await lifecycle.add_comment(task.id, comment_in.content, current_user, mentioned_user_ids=mentioned)
    return CommentResponse.from_model(comment)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
        comment_id: UUID,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
        lifecycle: TaskLifecycleManager = Depends(get_lifecycle_manager),
):
    comment = await crud.task.get_comment_by_uuid(db, comment_id)
    if comment is None:
        raise NotFoundError("Comment", comment_id)
    await lifecycle.delete_comment(comment.id, current_user)


@router.get("/tasks/{task_id}/attachments", response_model=List[AttachmentResponse])
async def list_attachments(
        task_id: UUID,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    task = await task_or_404(db, task_id)
    return [AttachmentResponse.from_model(a) for a in await crud.task.list_task_attachments(db, task.id)]


@router.post("/tasks/{task_id}/attachments", response_model=AttachmentResponse, status_code=status.HTTP_201_CREATED)
async def upload_attachment(
        task_id: UUID,
        file: UploadFile = File(...),
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
        lifecycle: TaskLifecycleManager = Depends(get_lifecycle_manager),
):
    task = await task_or_404(db, task_id)
    content = await file.read()
    attachment = await lifecycle.add_attachment(
        task.id, file.filename, file.content_type or "application/octet-stream", content, current_user,
    )
    return AttachmentResponse.from_model(attachment)


@router.get("/attachments/{attachment_id}/download")
async def download_attachment(
        attachment_id: UUID,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
        storage: AttachmentStorage = Depends(get_attachment_storage),
):
    attachment = await crud.task.get_attachment_by_uuid(db, attachment_id)
    if attachment is None:
        raise NotFoundError("Attachment", attachment_id)
    path = storage.resolve(attachment.file_path)
    if not path.exists():
        raise NotFoundError("Attachment file", attachment_id)
    return FileResponse(path, media_type=attachment.mime_type, filename=attachment.filename)


@router.delete("/attachments/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attachment(
        attachment_id: UUID,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
        lifecycle: TaskLifecycleManager = Depends(get_lifecycle_manager),
):
    attachment = await crud.task.get_attachment_by_uuid(db, attachment_id)
    if attachment is None:
        raise NotFoundError("Attachment", attachment_id)
    await lifecycle.delete_attachment(attachment, current_user)
