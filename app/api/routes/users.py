from fastapi import APIRouter, Depends, HTTPException
from typing import List

from app.api.deps import get_directory
from app.core.auth import get_current_user, CurrentUser
from app.schemas.user import UserOut
from app.services.users import UserDirectory

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[UserOut])
def list_active_users(
    directory: UserDirectory = Depends(get_directory),
    current_user: CurrentUser = Depends(get_current_user),
):
    return directory.list_active_users()


@router.get("/me", response_model=UserOut)
def get_me(
    directory: UserDirectory = Depends(get_directory),
    current_user: CurrentUser = Depends(get_current_user),
):
    user = directory.get_user_by_id(current_user.id)
    if user is None and current_user.email:
        user = directory.get_user_by_email(current_user.email)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/{user_id}", response_model=UserOut)
def get_user(
    user_id: str,
    directory: UserDirectory = Depends(get_directory),
    current_user: CurrentUser = Depends(get_current_user),
):
    user = directory.get_user_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user
