from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from marketplace.api.deps import get_current_user
from marketplace.core.config import settings
from marketplace.core.exceptions import ValidationFailed
from marketplace.core.rate_limiter import limiter
from marketplace.core.security import create_access_token
from marketplace.db.session import get_db
from marketplace.models.user import User
from marketplace.schemas.user import SessionUser, UserLogin
from marketplace.services.user_service import UserService
from marketplace.utils.response import success

router = APIRouter()


def _should_use_secure_cookies(request: Request) -> bool:
    if settings.ENVIRONMENT != "production":
        return False
    return request.url.scheme == "https"


def _session_user(user: User) -> dict:
    return SessionUser(
        username=user.username,
        is_admin=user.is_admin,
        average_rating=user.average_rating,
        review_count=user.review_count,
    ).model_dump()


@router.post(
    "/login",
    response_model=dict,
    summary="Login with username and password",
    description="""
Authenticates a user and sets the `access_token` session cookie (httpOnly).

Accepts a JSON body or form fields `username` and `password`.
""",
    responses={
        200: {"description": "Login successful"},
        400: {"description": "Missing credentials"},
        401: {"description": "Invalid credentials"},
    },
)
@limiter.limit("5/minute")
async def login(request: Request, db: Session = Depends(get_db)):
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        payload = await request.json()
    else:
        form = await request.form()
        payload = dict(form)

    try:
        credentials = UserLogin(**(payload if isinstance(payload, dict) else {}))
    except ValidationError as exc:
        raise ValidationFailed(
            "Username and password are required",
            errors=exc.errors(include_url=False, include_context=False, include_input=False),
        )

    user = UserService.authenticate(db, credentials.username, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
        )

    access_token = create_access_token(
        data={"sub": user.username, "is_admin": user.is_admin}
    )

    response = JSONResponse(
        content=success(
            data={
                "user": _session_user(user),
                "access_token": access_token,
            },
            message="Login successful",
        )
    )
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=_should_use_secure_cookies(request),
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )
    return response


@router.post("/logout")
def logout(request: Request):
    response = JSONResponse(content=success(message="Logout successful"))
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        samesite="lax",
        secure=_should_use_secure_cookies(request),
    )
    return response


@router.get("/me", response_model=dict)
def me(current_user: User = Depends(get_current_user)):
    return success(data=_session_user(current_user), message="Session retrieved")
