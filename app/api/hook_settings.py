"""Hook setting management endpoints"""
import re
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.models import HookSetting
from app.models.base import get_db

router = APIRouter(prefix="/api/hook-settings", tags=["hook-settings"])


class HookSettingCreate(BaseModel):
    position: int = 0
    project_pattern: str
    enabled: bool = True
    remark_tracker_id: int
    remark_closed_status_id: int
    resolve_keyword: str = ""


class HookSettingResponse(BaseModel):
    id: int
    position: int
    project_pattern: str
    enabled: bool
    remark_tracker_id: int
    remark_closed_status_id: int
    resolve_keyword: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


def _validate_pattern(pattern: str) -> None:
    try:
        re.compile(pattern)
    except re.error as e:
        raise HTTPException(status_code=400, detail=f"Invalid project pattern: {e}")


def _get_setting_or_404(db: Session, setting_id: int) -> HookSetting:
    setting = db.query(HookSetting).filter(HookSetting.id == setting_id).first()
    if not setting:
        raise HTTPException(status_code=404, detail="Hook setting not found")
    return setting


@router.get("/", response_model=List[HookSettingResponse])
def list_hook_settings(db: Session = Depends(get_db)):
    """List hook settings in evaluation order"""
    return db.query(HookSetting).order_by(HookSetting.position, HookSetting.id).all()


@router.post("/", response_model=HookSettingResponse)
def create_hook_setting(setting: HookSettingCreate, db: Session = Depends(get_db)):
    """Create a new hook setting"""
    _validate_pattern(setting.project_pattern)

    db_setting = HookSetting(**setting.dict())
    db.add(db_setting)
    db.commit()
    db.refresh(db_setting)
    return db_setting


@router.get("/{setting_id}", response_model=HookSettingResponse)
def get_hook_setting(setting_id: int, db: Session = Depends(get_db)):
    """Get a specific hook setting"""
    return _get_setting_or_404(db, setting_id)


@router.put("/{setting_id}", response_model=HookSettingResponse)
def update_hook_setting(setting_id: int, setting: HookSettingCreate, db: Session = Depends(get_db)):
    """Update a hook setting"""
    db_setting = _get_setting_or_404(db, setting_id)
    _validate_pattern(setting.project_pattern)

    for key, value in setting.dict().items():
        setattr(db_setting, key, value)

    db.commit()
    db.refresh(db_setting)
    return db_setting


@router.delete("/{setting_id}")
def delete_hook_setting(setting_id: int, db: Session = Depends(get_db)):
    """Delete a hook setting"""
    setting = _get_setting_or_404(db, setting_id)
    db.delete(setting)
    db.commit()
    return {"message": "Hook setting deleted successfully"}


@router.post("/{setting_id}/toggle", response_model=HookSettingResponse)
def toggle_hook_setting(setting_id: int, db: Session = Depends(get_db)):
    """Enable or disable a hook setting"""
    setting = _get_setting_or_404(db, setting_id)
    setting.enabled = not setting.enabled
    db.commit()
    db.refresh(setting)
    return setting
