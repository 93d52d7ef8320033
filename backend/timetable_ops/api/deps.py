from collections.abc import Callable, Generator, Iterable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session, sessionmaker

from timetable_ops.core.config import Settings, get_settings
from timetable_ops.core.security import decode_token
from timetable_ops.models.user import User, UserRole
from timetable_ops.services.bulk_operations import BulkOperationService
from timetable_ops.services.operation_tracker import OperationTracker

security = HTTPBearer()


def get_session_factory(request: Request) -> sessionmaker[Session]:
    return request.app.state.session_factory


def get_operations_session_factory(request: Request) -> sessionmaker[Session]:
    return request.app.state.operations_session_factory


def get_db(
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    token = credentials.credentials
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError as exc:
        raise credentials_exception from exc

    user = db.get(User, user_id)
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return user


def require_roles(*roles: UserRole) -> Callable[[User], User]:
    allowed_roles: Iterable[UserRole] = set(roles)

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return role_checker


def get_tracker(
    session_factory: sessionmaker[Session] = Depends(get_operations_session_factory),
) -> OperationTracker:
    return OperationTracker(session_factory)


def get_bulk_service(
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
    tracker: OperationTracker = Depends(get_tracker),
    settings: Settings = Depends(get_settings),
) -> BulkOperationService:
    return BulkOperationService(session_factory, tracker, settings)
