from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from clinic_scheduling.auth import jwt_handler
from clinic_scheduling.core.errors import NotPermitted
from clinic_scheduling.core.identity import ROLES, Caller

security = HTTPBearer()


def get_current_caller(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Caller:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    role = payload.get("role")
    if not subject or not str(subject).isdigit():
        raise HTTPException(status_code=401, detail="Invalid token subject")
    if role not in ROLES:
        raise HTTPException(status_code=401, detail="Invalid token role")

    return Caller(id=int(subject), role=role)


def require_role(caller: Caller, role: str, message: str) -> None:
    if caller.role != role:
        raise NotPermitted(message)
