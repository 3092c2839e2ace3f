from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
import bcrypt
import models
from database import get_db, SessionLocal
from services.analytics_service import AnalyticsOrchestrator
from services.financial_data import FinancialDataProvider
from services.gemini_service import get_gemini_service
from dotenv import load_dotenv
import os
load_dotenv()
# JWT Configuration
# In production set SECRET_KEY, e.g. generated with: openssl rand -hex 32
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# Security scheme
# Use auto_error=False to handle missing/invalid tokens ourselves
security = HTTPBearer(auto_error=False)

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """
    Create a JWT access token.
    
    Args:
        data: Dictionary containing user data to encode in token
        expires_delta: Optional custom expiration time
    
    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt

def verify_token(token: str) -> dict:
    """
    Verify and decode a JWT token.
    
    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> models.User:
    """
    Dependency for getting the current authenticated user from JWT token.
    
    This extracts the JWT token from the Authorization header,
    validates it, and returns the corresponding user from the database.
    
    Raises:
        HTTPException: 401 if token is missing/invalid, 404 if the user no longer exists
    """
    # Check if credentials were provided
    if not credentials or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    # Verify and decode token
    payload = verify_token(credentials.credentials)
    
    # Get user_id from token payload
    user_id: int = payload.get("user_id")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    user = db.query(models.User).filter(models.User.user_id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    
    return user

def get_insight_generator_factory():
    """
    Dependency returning a zero-argument callable that builds the model client.

    The client is not created here: a missing GEMINI_API_KEY must surface inside
    the orchestrator, where it falls back, not as a 500 during dependency resolution.
    """
    return get_gemini_service

def get_financial_data_provider() -> FinancialDataProvider:
    return FinancialDataProvider(SessionLocal)

def get_analytics_orchestrator(
    request: Request,
    generator_factory=Depends(get_insight_generator_factory),
    provider: FinancialDataProvider = Depends(get_financial_data_provider),
) -> AnalyticsOrchestrator:
    """
    Build an orchestrator around the application's shared cache and settings.

    The cache lives on ``app.state`` so every request in the process sees the
    same results and in-flight computations.
    """
    return AnalyticsOrchestrator(
        cache=request.app.state.analytics_cache,
        provider=provider,
        generator_factory=generator_factory,
        settings=request.app.state.analytics_settings,
    )
