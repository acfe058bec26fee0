"""
FastAPI dependencies. Injected into route handlers.

Components are built once by the application factory and kept on app.state.
"""

from fastapi import Header, HTTPException, Request, status

from .auth import AuthenticatedUser, get_current_user
from ..orchestrator.agent_loop import AgentLoop


async def get_user(
    request: Request,
    authorization: str = Header(default=""),
) -> AuthenticatedUser:
    """
    Resolve authenticated user from Authorization header.
    Returns dev user if FF_USE_AUTH=false.
    """
    try:
        return await get_current_user(
            authorization,
            client=request.app.state.auth_client,
            flags=request.app.state.flags,
        )
    except PermissionError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_agent(request: Request) -> AgentLoop:
    return request.app.state.agent
