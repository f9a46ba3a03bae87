from fastapi import APIRouter, Depends
from pydantic import BaseModel

from docspot.auth.dependencies import get_current_user
from docspot.models.user import User

router = APIRouter(tags=['auth'])


class CurrentUserResponse(BaseModel):
    id: int
    email: str
    name: str
    phone: str | None = None
    role: str

    class Config:
        from_attributes = True


@router.get('/me', response_model=CurrentUserResponse)
def read_current_user(user: User = Depends(get_current_user)):
    return CurrentUserResponse.model_validate(user)
