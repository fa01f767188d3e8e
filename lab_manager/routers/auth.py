from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from lab_manager.database import get_db
from lab_manager.models.user import User
from lab_manager.schemas.user import UserCreate, UserOut
from lab_manager.utils.auth import create_access_token, get_current_user
from lab_manager.utils.hashing import hash_password, verify_password

import logging
logger = logging.getLogger("app.auth")


router = APIRouter(prefix="/auth", tags=["Auth"])


# Register (always a student; role is never taken from the client)
@router.post("/register", response_model=UserOut, status_code=201)
def register(user_data: UserCreate, db: Session = Depends(get_db)):
    email = user_data.email.strip().lower()
    exists = db.query(User).filter(User.email == email).first()
    if exists:
        raise HTTPException(status_code=409, detail="Email already registered")

    new_user = User(
        email=email,
        password_hash=hash_password(user_data.password),
        role="student",
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        grade_level=user_data.grade_level,
        trade_type=user_data.trade_type,
        section=user_data.section,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    logger.info("Registered student %s", email)
    return new_user


# Login (OAuth2 form; username is the email)
@router.post("/login")
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    email = form_data.username.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(status_code=403, detail="Invalid email or password")
    token = create_access_token({"sub": user.email, "role": user.role})
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", response_model=UserOut)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user
