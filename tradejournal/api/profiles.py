"""Profile API — notification settings per user."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from tradejournal.database import get_session
from tradejournal.models.profile import Profile
from tradejournal.schemas.profile import ProfileCreate, ProfileUpdate, ProfileRead

router = APIRouter(prefix="/api/profiles", tags=["profiles"])


def _commit(session: Session, profile: Profile) -> Profile:
    session.add(profile)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail="Telegram chat id already registered")
    session.refresh(profile)
    return profile


@router.post("", response_model=ProfileRead, status_code=201)
def create_profile(data: ProfileCreate, session: Session = Depends(get_session)):
    return _commit(session, Profile(**data.model_dump()))


@router.get("/{profile_id}", response_model=ProfileRead)
def get_profile(profile_id: int, session: Session = Depends(get_session)):
    profile = session.get(Profile, profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.put("/{profile_id}", response_model=ProfileRead)
def update_profile(
    profile_id: int,
    data: ProfileUpdate,
    session: Session = Depends(get_session),
):
    profile = session.get(Profile, profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")

    update_data = data.model_dump(exclude_unset=True)
    if "telegram_chat_id" in update_data and update_data["telegram_chat_id"] != profile.telegram_chat_id:
        # A report message belongs to the old chat; start over in the new one
        profile.last_report_message_id = None
    for key, value in update_data.items():
        setattr(profile, key, value)
    profile.updated_at = datetime.now(timezone.utc)
    return _commit(session, profile)
