import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.adapters.functions_client import FunctionsClient
from app.config import settings
from app.services.context_service import CallerContext
from app.services.exceptions import Unauthorized

security = HTTPBearer(auto_error=False)


def get_caller(creds: HTTPAuthorizationCredentials = Depends(security)) -> CallerContext:
    if not creds:
        raise Unauthorized()
    try:
        payload = jwt.decode(
            creds.credentials, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.PyJWTError:
        raise Unauthorized()
    user_id = payload.get("sub")
    if not user_id:
        raise Unauthorized()
    return CallerContext(user_id=str(user_id))


def get_functions_client() -> FunctionsClient:
    return FunctionsClient()
