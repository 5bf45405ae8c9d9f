# laxbay/api/auth_routes.py
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from .. import crud, schemas
from ..auth import Identity, end_session, hash_password, require_user, start_session, verify_password
from ..db import get_db
from ..utils import logger

router = APIRouter()


@router.post("/api/store/register", status_code=201)
def register(payload: schemas.RegisterRequest, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    username = payload.username.strip()
    if crud.account_exists(db, email, username):
        raise HTTPException(status_code=400, detail="Email or username already exists.")
    user = crud.create_user(db, {
        "first_name": payload.firstName.strip(),
        "last_name": payload.lastName.strip(),
        "email": email,
        "username": username,
        "password_hash": hash_password(payload.password),
        "address": payload.address.strip(),
        "city": payload.city.strip(),
        "zip_code": payload.zipCode.strip(),
    })
    logger.info("Registered user %s", user.username)
    return {"message": "User registered successfully", "user": schemas.UserOut.from_user(user)}


@router.post("/api/store/login")
def login(payload: schemas.LoginRequest, request: Request, db: Session = Depends(get_db)):
    user = crud.get_user_by_email(db, payload.email)
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=400, detail="Invalid email or password")
    start_session(request, user)
    return {"message": "Login successful", "user": schemas.UserOut.from_user(user)}


@router.post("/api/store/logout")
def logout(request: Request):
    end_session(request)
    return {"message": "Logged out"}


@router.get("/api/store/me")
def me(identity: Identity = Depends(require_user)):
    return {"id": identity.user_id, "username": identity.username, "role": identity.role}


@router.get("/api/user/email/{username}")
def user_email(username: str, db: Session = Depends(get_db)):
    user = crud.get_user_by_username(db, username)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"email": user.email}
