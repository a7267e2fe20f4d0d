from sqlalchemy.orm import Session
from apps.auth.models import UserModel, Role
from apps.auth.schemas import UserCreate, UserSession
from apps.auth.permissions import get_permissions, TROUBLESHOOTER_POSITIONS
from core.database import get_db, settings
from fastapi import Depends, HTTPException, status
from passlib.context import CryptContext
from jose import JWTError, jwt
from fastapi.security import OAuth2PasswordBearer
from datetime import datetime, timedelta
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def get_password_hash(password):
    return pwd_context.hash(password)

def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)

def get_role_by_name(db: Session, name: str) -> Optional[Role]:
    return db.query(Role).filter(Role.name == name).first()

def create_user(db: Session, user: UserCreate) -> UserModel:
    role_obj = get_role_by_name(db, user.role)
    if not role_obj:
        raise HTTPException(status_code=400, detail=f"Role '{user.role}' does not exist.")
    if db.query(UserModel).filter(UserModel.username == user.username).first():
        raise HTTPException(status_code=400, detail=f"Username '{user.username}' is already taken.")
    db_user = UserModel(
        username=user.username,
        name=user.name,
        email=user.email,
        dept=user.dept,
        position=user.position,
        hashed_password=get_password_hash(user.password),
        role=role_obj
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.info(f"Created user {db_user.username} ({db_user.position or 'no position'})")
    return db_user

def authenticate_user(db: Session, username: str, password: str):
    user = db.query(UserModel).filter(UserModel.username == username).first()
    if user and verify_password(password, user.hashed_password):
        return user
    return None

def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt

def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Your session expired, log out and log in again",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception
    user = db.query(UserModel).filter(UserModel.username == username).first()
    if user is None:
        raise credentials_exception
    return user


def get_current_admin(current_user: UserModel = Depends(get_current_user)):
    if not current_user.role or current_user.role.name != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return current_user


def build_session(user: UserModel) -> UserSession:
    return UserSession(
        user_id=user.id,
        username=user.username,
        name=user.name,
        dept=user.dept,
        position=user.position,
        permissions=get_permissions(user.position),
    )


def get_current_session(current_user: UserModel = Depends(get_current_user)) -> UserSession:
    return build_session(current_user)


def user_to_response(user: UserModel, with_permissions: bool = False) -> dict:
    data = {
        "id": user.id,
        "username": user.username,
        "name": user.name,
        "email": user.email,
        "dept": user.dept,
        "position": user.position,
        "role": user.role.name if user.role else "unknown",
    }
    if with_permissions:
        data["permissions"] = get_permissions(user.position)
    return data


def get_technicians(db: Session) -> List[UserModel]:
    """Users who can be assigned IT job orders."""
    return (
        db.query(UserModel)
        .filter(UserModel.position.in_(sorted(TROUBLESHOOTER_POSITIONS)))
        .order_by(UserModel.name)
        .all()
    )
