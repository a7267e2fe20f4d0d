from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload
from apps.auth.schemas import UserBase, UserCreate, UserMe, Token, LoginRequest, LoginResponse
from apps.auth.models import UserModel
from apps.auth.services import (
    get_db, create_user, authenticate_user, get_current_admin,
    create_access_token, get_current_user, user_to_response, get_technicians
)
from fastapi.security import OAuth2PasswordRequestForm
from typing import List
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/token", response_model=Token)
def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    try:
        user = authenticate_user(db, username=form_data.username, password=form_data.password)
        if not user:
            raise HTTPException(status_code=401, detail="Incorrect username or password")
        access_token = create_access_token(data={"sub": user.username})
        return {"access_token": access_token, "token_type": "bearer"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error in token endpoint: {e}")
        raise HTTPException(status_code=500, detail="Internal server error during authentication")


@router.post("/login", response_model=LoginResponse)
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    """
    Exchange a username and password for a bearer token and the user profile.
    The profile carries the resolved job order permissions so the client can
    gate its UI without re-deriving them.
    """
    if not credentials.username or not credentials.password:
        raise HTTPException(status_code=400, detail="Please provide username and password")
    user = authenticate_user(db, username=credentials.username, password=credentials.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    logger.info(f"Login successful for user: {user.username}")
    return {
        "access_token": create_access_token(data={"sub": user.username}),
        "token_type": "bearer",
        "user": user_to_response(user, with_permissions=True),
    }


@router.post("/users", response_model=UserBase, status_code=status.HTTP_201_CREATED)
def create_new_user(user: UserCreate, db: Session = Depends(get_db), admin: UserModel = Depends(get_current_admin)):
    try:
        db_user = create_user(db, user)
        return user_to_response(db_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating user: {e}")
        raise HTTPException(status_code=500, detail="Error creating user")


@router.get("/users", response_model=List[UserBase])
def list_users(db: Session = Depends(get_db), admin: UserModel = Depends(get_current_admin)):
    """
    Endpoint for admins to list all users.
    """
    try:
        users_with_roles = db.query(UserModel).options(joinedload(UserModel.role)).all()
        return [user_to_response(user) for user in users_with_roles]
    except Exception as e:
        logger.error(f"Error listing users: {e}")
        raise HTTPException(status_code=500, detail="An internal server error occurred while fetching users.")


@router.get("/users/me", response_model=UserMe)
def read_users_me(current_user: UserModel = Depends(get_current_user)):
    """
    Returns the current authenticated user's details and job order permissions.
    """
    return user_to_response(current_user, with_permissions=True)


@router.get("/users/technicians", response_model=List[UserBase])
def list_technicians(db: Session = Depends(get_db), current_user: UserModel = Depends(get_current_user)):
    """IT staff that job orders can be assigned to."""
    return [user_to_response(user) for user in get_technicians(db)]
