from fastapi import APIRouter, Depends

from phone_auth.core.deps import get_current_user
from phone_auth.models.user import User
from phone_auth.schemas.auth import UserSummary

router = APIRouter(tags=["user"])


@router.get("/user", response_model=UserSummary)
def current_user(user: User = Depends(get_current_user)):
    return UserSummary.from_user(user)
