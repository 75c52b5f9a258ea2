import uuid
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from .auth.evaluator import AuthorizationService
from .auth.references import coerce_uuid
from .crud.user import UserRepository
from .database import get_session
from .domain.ports.authz import PrincipalData, PrincipalStore
from .errors import AuthError, PermissionError, error_payload


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


def get_principal_store(db: AsyncSession = Depends(get_db)) -> PrincipalStore:
    return UserRepository(db)


def get_authorization_service(db: AsyncSession = Depends(get_db)) -> AuthorizationService:
    return AuthorizationService(db)


async def get_current_principal(
    request: Request,
    principals: PrincipalStore = Depends(get_principal_store),
) -> PrincipalData | None:
    """Load the principal the authentication layer put on the request.

    Authentication is done upstream; it stores the caller's id on
    ``request.state.principal_id``. No id, a malformed id or an unknown user
    all mean an anonymous caller.
    """
    principal_id: uuid.UUID | None = coerce_uuid(getattr(request.state, "principal_id", None))
    if principal_id is None:
        return None
    return await principals.get_by_id(principal_id)


async def _request_arguments(request: Request) -> dict[str, Any]:
    args: dict[str, Any] = dict(request.query_params)
    if request.headers.get("content-type", "").startswith("application/json"):
        body = await request.body()
        if body:
            try:
                payload = await request.json()
            except ValueError:
                payload = None
            if isinstance(payload, dict):
                args.update(payload)
    args.update(request.path_params)
    return args


def require_operation(name: str):
    """Dependency factory enforcing the declared rule for ``name``.

    Usage::

        @router.patch("/species/{id}", dependencies=[Depends(require_operation("update_species"))])
    """

    async def dependency(
        request: Request,
        principal: PrincipalData | None = Depends(get_current_principal),
        authz: AuthorizationService = Depends(get_authorization_service),
    ) -> PrincipalData | None:
        args = await _request_arguments(request)
        result = await authz.evaluate_operation(name, principal, args)
        if result.allowed:
            return principal

        if result.unauthenticated:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=error_payload(AuthError.code, AuthError.message),
            )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=error_payload(PermissionError.code, PermissionError.message),
        )

    return dependency
