"""FastAPI application exposing the profile and login endpoints."""
from __future__ import annotations

import logging
from datetime import datetime
from functools import partial
from typing import Any, Dict, List, Literal, Optional, Union

import anyio
from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .config import Settings, load_settings
from .database import Database
from .errors import ServiceError, StoreError, Unauthenticated
from .models import Account, Admin, Identity, Profile, ProfilePage, Role
from .security import PasswordHasher, TokenAuthenticator, require_admin, require_contractor
from .service import DEFAULT_LIMIT, DEFAULT_PAGE, ProfileService
from .tokens import TokenIssuer

logger = logging.getLogger("marketplace.api")

_ERROR_STATUS: Dict[str, int] = {
    "unauthenticated": status.HTTP_401_UNAUTHORIZED,
    "invalid_credentials": status.HTTP_401_UNAUTHORIZED,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "duplicate_email": status.HTTP_409_CONFLICT,
    "immutable_field": status.HTTP_400_BAD_REQUEST,
    "invalid_field": status.HTTP_400_BAD_REQUEST,
}


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    type: Literal["client", "contractor"]
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    profession: Optional[str] = Field(default=None, max_length=100)
    password: Optional[str] = Field(default=None, min_length=8, max_length=256)


class ProfileUpdateRequest(CamelModel):
    """Partial update. Which keys were sent matters, not only their values."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    type: Any = None
    profession: Optional[str] = Field(default=None, max_length=100)
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, min_length=3, max_length=255)


class LoginRequest(CamelModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)
    type: Optional[str] = None


class ProfileResponse(CamelModel):
    id: str
    type: str
    profession: Optional[str]
    first_name: str
    last_name: str
    email: str
    balance: float
    created_at: datetime
    updated_at: datetime


class AdminResponse(CamelModel):
    id: str
    role: str = Role.ADMIN.value
    email: str
    first_name: str
    last_name: str
    created_at: datetime
    updated_at: datetime


class PublicUser(CamelModel):
    id: str
    email: str
    first_name: str
    last_name: str


class RegisterResponse(CamelModel):
    message: str
    profile: ProfileResponse
    token: str


class ProfileEnvelope(CamelModel):
    data: ProfileResponse


class ProfileListData(CamelModel):
    total_profiles: int
    total_pages: int
    current_page: int
    profiles: List[ProfileResponse]


class ProfileListResponse(CamelModel):
    data: ProfileListData


class ProfileUpdateResponse(CamelModel):
    message: str
    profile: ProfileResponse


class CurrentAccountResponse(CamelModel):
    profile: Union[ProfileResponse, AdminResponse]


class LoginResponse(CamelModel):
    message: str
    token: str
    user: PublicUser


def profile_to_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        type=profile.type.value,
        profession=profile.profession,
        first_name=profile.first_name,
        last_name=profile.last_name,
        email=profile.email,
        balance=profile.balance,
        created_at=profile.created_at,
        updated_at=profile.updated_at,
    )


def admin_to_response(admin: Admin) -> AdminResponse:
    return AdminResponse(
        id=admin.id,
        email=admin.email,
        first_name=admin.first_name,
        last_name=admin.last_name,
        created_at=admin.created_at,
        updated_at=admin.updated_at,
    )


def account_to_response(account: Account) -> Union[ProfileResponse, AdminResponse]:
    if isinstance(account, Admin):
        return admin_to_response(account)
    return profile_to_response(account)


def page_to_response(page: ProfilePage) -> ProfileListResponse:
    return ProfileListResponse(
        data=ProfileListData(
            total_profiles=page.total,
            total_pages=page.total_pages,
            current_page=page.current_page,
            profiles=[profile_to_response(profile) for profile in page.profiles],
        )
    )


def register_profile_routes(
    app: FastAPI,
    service: ProfileService,
    *,
    authenticator: TokenAuthenticator,
    settings: Settings,
) -> None:
    """Expose the profile endpoints on the provided FastAPI application."""

    router = APIRouter(prefix="/profiles", tags=["profiles"])

    def _set_session_cookie(response: Response, token: str) -> None:
        response.set_cookie(
            settings.cookie_name,
            token,
            max_age=service.tokens.max_age,
            httponly=True,
            secure=settings.secure_cookies,
            samesite="lax",
        )

    @router.post("", status_code=status.HTTP_201_CREATED, response_model=RegisterResponse)
    async def register(payload: RegisterRequest, response: Response) -> RegisterResponse:
        profile, token = await anyio.to_thread.run_sync(
            partial(
                service.register,
                profile_type=payload.type,
                first_name=payload.first_name.strip(),
                last_name=payload.last_name.strip(),
                email=payload.email,
                profession=payload.profession,
                password=payload.password,
            )
        )
        _set_session_cookie(response, token)
        return RegisterResponse(
            message="Profile created successfully",
            profile=profile_to_response(profile),
            token=token,
        )

    @router.get("", response_model=ProfileListResponse)
    async def list_profiles(
        page: int = Query(DEFAULT_PAGE),
        limit: int = Query(DEFAULT_LIMIT),
        profile_type: Optional[str] = Query(None, alias="type"),
        first_name: Optional[str] = Query(None, alias="firstName"),
        last_name: Optional[str] = Query(None, alias="lastName"),
        profession: Optional[str] = Query(None),
    ) -> ProfileListResponse:
        filters = {
            "type": profile_type,
            "first_name": first_name,
            "last_name": last_name,
            "profession": profession,
        }
        result = await anyio.to_thread.run_sync(
            partial(service.list_profiles, page=page, limit=limit, filters=filters)
        )
        return page_to_response(result)

    @router.post("/login", response_model=LoginResponse)
    async def login(payload: LoginRequest, response: Response) -> LoginResponse:
        result = await anyio.to_thread.run_sync(
            partial(
                service.login,
                email=payload.email,
                password=payload.password,
                account_type=payload.type,
            )
        )
        _set_session_cookie(response, result.token)
        account = result.account
        return LoginResponse(
            message="Login successful",
            token=result.token,
            user=PublicUser(
                id=account.id,
                email=account.email,
                first_name=account.first_name,
                last_name=account.last_name,
            ),
        )

    @router.get("/me", response_model=CurrentAccountResponse)
    async def get_logged_in(identity: Identity = Depends(authenticator)) -> CurrentAccountResponse:
        account = await anyio.to_thread.run_sync(service.get_logged_in, identity)
        return CurrentAccountResponse(profile=account_to_response(account))

    @router.get("/{profile_id}", response_model=ProfileEnvelope)
    async def get_profile(profile_id: str) -> ProfileEnvelope:
        profile = await anyio.to_thread.run_sync(service.get_profile, profile_id)
        return ProfileEnvelope(data=profile_to_response(profile))

    @router.patch("/{profile_id}", response_model=ProfileUpdateResponse)
    async def update_profile(
        profile_id: str,
        payload: ProfileUpdateRequest,
        identity: Identity = Depends(authenticator),
    ) -> ProfileUpdateResponse:
        changes = payload.model_dump(exclude_unset=True)
        profile = await anyio.to_thread.run_sync(service.update_profile, identity, profile_id, changes)
        return ProfileUpdateResponse(
            message="Profile updated successfully",
            profile=profile_to_response(profile),
        )

    app.include_router(router)


def create_app(
    *,
    settings: Settings | None = None,
    database: Database | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the identity service.

    A ``database`` passed in must already be initialised.
    """

    app_settings = settings or load_settings()
    if database is None:
        db = Database(app_settings.database_path)
        db.initialize()
    else:
        db = database

    tokens = TokenIssuer(app_settings.token_secret, ttl=app_settings.token_ttl)
    service = ProfileService(db, tokens, PasswordHasher())
    authenticator = TokenAuthenticator(tokens, cookie_name=app_settings.cookie_name)

    if not app_settings.secure_cookies:
        logger.warning(
            "Session cookies are not marked as secure. Only disable secure cookies for"
            " local development."
        )

    app = FastAPI(
        title="Marketplace Identity Service",
        version="1.0.0",
        description="Registration, login and self-service profile management for clients and contractors.",
    )
    app.state.settings = app_settings
    app.state.database = db
    app.state.service = service
    app.state.authenticator = authenticator
    app.state.role_gates = {
        Role.ADMIN: require_admin(authenticator),
        Role.CONTRACTOR: require_contractor(authenticator),
    }

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    register_profile_routes(app, service, authenticator=authenticator, settings=app_settings)

    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, exc: StoreError):
        logger.error("Credential store failure on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error", "kind": "internal"},
        )

    @app.exception_handler(ServiceError)
    async def handle_service_error(_: Request, exc: ServiceError):
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
        return JSONResponse(
            status_code=_ERROR_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            content={"detail": exc.message, "kind": exc.kind},
            headers=headers,
        )

    return app


__all__ = ["create_app", "register_profile_routes"]
