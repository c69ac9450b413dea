from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, constr
from sqlalchemy.orm import Session

from quizmaster.core.auth import TokenData, create_token, get_current_user
from quizmaster.core.database import get_db
from quizmaster.models.schemas import UserOut
from quizmaster.services import users as user_service

router = APIRouter()


class Credentials(BaseModel):
    username: constr(strip_whitespace=True, min_length=1, max_length=100)
    password: constr(min_length=1)


class LoginResult(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


@router.post("/register", response_model=UserOut, status_code=201)
def register(payload: Credentials, db: Session = Depends(get_db)):
    return user_service.create_user(db, payload.username, payload.password)


@router.post("/login", response_model=LoginResult)
def login(payload: Credentials, db: Session = Depends(get_db)):
    user = user_service.authenticate(db, payload.username, payload.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = create_token(user.id, [user.role])
    return LoginResult(access_token=token, user=UserOut.model_validate(user))


@router.get("/me", response_model=UserOut)
def me(user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return user_service.get_user(db, user.user_id)
