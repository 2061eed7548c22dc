from datetime import datetime, timedelta
from typing import Optional, Callable
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session
from models.user import User, UserRole
from schemas.user import TokenData, Principal
from core.config import settings
from core.exceptions import AuthenticationError, AuthorizationError
from database.connection import get_db
import logging

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS
)

# JWT settings
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.JWT_ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES
TOKEN_ISSUER = "store-ratings"

security = HTTPBearer(auto_error=False)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token."""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({
        "exp": expire,
        "iat": datetime.utcnow(),
        "iss": TOKEN_ISSUER,
        "type": "access"
    })

    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    logger.info(f"Access token created for user: {data.get('sub')}")
    return encoded_jwt

def create_token_for_user(user: User) -> str:
    return create_access_token(data={"sub": user.email, "user_id": str(user.id)})

def verify_token(token: str) -> Optional[TokenData]:
    """Decode a JWT token; None when it is invalid, expired or incomplete."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], issuer=TOKEN_ISSUER)
    except JWTError as e:
        logger.warning(f"JWT verification failed: {str(e)}")
        return None

    email: str = payload.get("sub")
    user_id: str = payload.get("user_id")
    if email is None or user_id is None or payload.get("type") != "access":
        logger.warning("Token missing required claims")
        return None

    return TokenData(email=email, user_id=user_id)

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Get a user by email (case-insensitive)."""
    email = email.lower().strip()
    return db.query(User).filter(User.email == email).first()

def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """Authenticate a user with email and password."""
    user = get_user_by_email(db, email)
    if not user:
        logger.warning(f"Authentication attempt with non-existent email: {email}")
        return None

    if not verify_password(password, user.password_hash):
        logger.warning(f"Authentication attempt with invalid password for user: {email}")
        return None

    logger.info(f"Successful authentication for user: {email}")
    return user

def _principal_from_token(db: Session, token: str) -> Principal:
    token_data = verify_token(token)
    if token_data is None:
        raise AuthenticationError("Could not validate credentials")

    # Role is re-read on every request so demotions apply immediately
    user = db.query(User).filter(User.id == token_data.user_id).first()
    if user is None:
        logger.warning(f"Token valid but user no longer exists: {token_data.user_id}")
        raise AuthenticationError("User no longer exists")

    return Principal.from_orm(user)

# Dependency to get the authenticated principal
def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Principal:
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Authentication credentials required")
    return _principal_from_token(db, credentials.credentials)

# Same as above, but anonymous callers get None instead of a 401
def get_optional_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Optional[Principal]:
    if not credentials or not credentials.credentials:
        return None
    try:
        return _principal_from_token(db, credentials.credentials)
    except AuthenticationError:
        return None

def require_roles(*roles: UserRole) -> Callable[..., Principal]:
    """Build a dependency that admits only principals holding one of ``roles``."""
    allowed = set(roles)

    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            logger.warning(f"Role {principal.role.value} denied; requires one of {sorted(r.value for r in allowed)}")
            raise AuthorizationError(
                f"This action requires one of the roles: {', '.join(sorted(r.value for r in allowed))}"
            )
        return principal

    return dependency

def rater_roles() -> tuple:
    """Roles allowed to submit or retract their own ratings."""
    if settings.ALLOW_ADMIN_RATINGS:
        return (UserRole.USER, UserRole.ADMIN)
    return (UserRole.USER,)

def require_rater(principal: Principal = Depends(get_current_principal)) -> Principal:
    # Resolved per call so the policy flag can change at runtime
    return require_roles(*rater_roles())(principal)
