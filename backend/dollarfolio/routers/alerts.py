"""Rate alerts API router."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from dollarfolio.database import get_db
from dollarfolio.dependencies.auth import get_current_user
from dollarfolio.models import Alert, AlertLog, User
from dollarfolio.schemas.alert import Alert as AlertSchema
from dollarfolio.schemas.alert import (
    AlertCreate,
    AlertLogList,
    AlertLogMarkRead,
    AlertUpdate,
)
from dollarfolio.schemas.alert import AlertLog as AlertLogSchema
from dollarfolio.schemas.common import MessageResponse

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


def _get_user_alert(db: Session, alert_id: str, user_id: str) -> Alert:
    alert = db.query(Alert).filter(Alert.id == alert_id, Alert.user_id == user_id).first()
    if not alert:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Alert with id {alert_id} not found",
        )
    return alert


@router.get("", response_model=list[AlertSchema])
async def list_alerts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get the current user's alerts, newest first."""
    return (
        db.query(Alert)
        .filter(Alert.user_id == current_user.id)
        .order_by(Alert.created_at.desc())
        .all()
    )


@router.post("", response_model=AlertSchema, status_code=status.HTTP_201_CREATED)
async def create_alert(
    data: AlertCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create an alert. Required fields depend on the alert type."""
    alert = Alert(user_id=current_user.id, is_active=True, **data.model_dump())
    alert.currency = alert.currency.upper()
    db.add(alert)
    db.commit()
    db.refresh(alert)
    return alert


@router.get("/logs", response_model=AlertLogList)
async def list_alert_logs(
    limit: int = Query(50, ge=1, le=200),
    unread: bool = Query(False, description="Only unread notifications"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get alert notifications, newest first, with the unread count."""
    query = db.query(AlertLog).filter(AlertLog.user_id == current_user.id)
    if unread:
        query = query.filter(AlertLog.is_read.is_(False))

    logs = query.order_by(AlertLog.created_at.desc()).limit(limit).all()
    unread_count = (
        db.query(AlertLog)
        .filter(AlertLog.user_id == current_user.id, AlertLog.is_read.is_(False))
        .count()
    )
    return AlertLogList(
        logs=[AlertLogSchema.model_validate(log) for log in logs],
        unread_count=unread_count,
    )


@router.patch("/logs", response_model=MessageResponse)
async def mark_alert_logs_read(
    data: AlertLogMarkRead,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Mark all notifications read, or only the given ids."""
    query = db.query(AlertLog).filter(AlertLog.user_id == current_user.id)
    if data.mark_all_read:
        query = query.filter(AlertLog.is_read.is_(False))
    elif data.log_ids:
        query = query.filter(AlertLog.id.in_(data.log_ids))
    else:
        return MessageResponse(message="Nothing to update")

    updated = query.update({AlertLog.is_read: True}, synchronize_session="fetch")
    db.commit()
    return MessageResponse(message=f"{updated} notification(s) marked as read")


@router.patch("/{alert_id}", response_model=AlertSchema)
async def update_alert(
    alert_id: str,
    data: AlertUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Turn an alert on or off."""
    alert = _get_user_alert(db, alert_id, current_user.id)
    alert.is_active = data.is_active
    db.commit()
    db.refresh(alert)
    return alert


@router.delete("/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_alert(
    alert_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete an alert. Its past notifications are kept."""
    alert = _get_user_alert(db, alert_id, current_user.id)
    db.delete(alert)
    db.commit()
