"""Label endpoints: /api/labels."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from shiftcal.auth.dependencies import get_current_user
from shiftcal.database import get_session
from shiftcal.db.models import User
from shiftcal.labels.schemas import LabelCreateRequest, LabelResponse, LabelUpdateRequest
from shiftcal.labels.service import create_label, delete_label, list_labels, update_label
from shiftcal.responses import SuccessResponse, generic_success

router = APIRouter(prefix="/api/labels", tags=["Labels"])


@router.get("", response_model=list[LabelResponse])
async def get_labels(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[LabelResponse]:
    labels = await list_labels(db, user.id)
    return [LabelResponse.model_validate(label) for label in labels]


@router.post("", response_model=LabelResponse, status_code=status.HTTP_201_CREATED)
async def post_label(
    body: LabelCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LabelResponse:
    label = await create_label(db, user.id, body.short_code, body.name, body.color)
    await db.commit()
    return LabelResponse.model_validate(label)


@router.put("/{label_id}", response_model=LabelResponse)
async def put_label(
    label_id: str,
    body: LabelUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LabelResponse:
    """Update any subset of shortCode, name and color."""
    label = await update_label(
        db,
        user.id,
        label_id,
        short_code=body.short_code,
        name=body.name,
        color=body.color,
    )
    await db.commit()
    return LabelResponse.model_validate(label)


@router.delete("/{label_id}", response_model=SuccessResponse)
async def remove_label(
    label_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SuccessResponse:
    await delete_label(db, user.id, label_id)
    await db.commit()
    return generic_success()
