from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from typing import Literal, Optional
import jwt
from datetime import datetime, timedelta, timezone
from exampractice.core.config import APP_SECRET, TOKEN_TTL_MINUTES

Role = Literal["student", "teacher", "admin"]
STAFF_ROLES = ("teacher", "admin")

class TokenData(BaseModel):
    sub: str
    role: Role = "student"

bearer = HTTPBearer(auto_error=False)

def create_token(user_id: str, role: str, ttl_minutes: int = TOKEN_TTL_MINUTES) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": user_id, "role": role, "iat": int(now.timestamp()), "exp": int((now + timedelta(minutes=ttl_minutes)).timestamp())}
    return jwt.encode(payload, APP_SECRET, algorithm="HS256")

def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> TokenData:
    if creds is None or creds.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization header")
    try:
        payload = jwt.decode(creds.credentials, APP_SECRET, algorithms=["HS256"])
        return TokenData(sub=payload["sub"], role=payload.get("role", "student"))
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

def require_roles(*required: str):
    def checker(user: TokenData = Depends(get_current_user)):
        if user.role not in required:
            raise HTTPException(status_code=403, detail="Insufficient role")
        return user
    return checker
