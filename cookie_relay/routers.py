import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from .context import AppContext
from .dependencies import CurrentUser, get_context, get_current_user
from .errors import ValidationError
from .views import (
    ApiResponse, PasswordResetRequest, SaveCookiesRequest, SignInRequest, SignUpRequest, SyncRequest,
)

logger = logging.getLogger(__name__)

api_router = APIRouter(prefix='/api')

# ──────────────────────────────────────────────────────────────────────────────
# Cookie relay API
# ──────────────────────────────────────────────────────────────────────────────
# POST   /api/auth/signin
# POST   /api/auth/signup
# POST   /api/auth/signout
# POST   /api/auth/reset-password
# POST   /api/cookies/save
# GET    /api/cookies/load/{domain}
# DELETE /api/cookies/{domain}
# GET    /api/domains
# POST   /api/domains/repair
# GET    /api/stats
# POST   /api/sync
# POST   /api/users
# ──────────────────────────────────────────────────────────────────────────────


# Authentication endpoints
@api_router.post('/auth/signin', response_model=ApiResponse, summary="Sign in with email and password")
def sign_in(request: SignInRequest, ctx: AppContext = Depends(get_context)):
    if not request.email or not request.password:
        raise ValidationError('Email and password are required')

    result = ctx.auth.sign_in(request.email, request.password)
    return ApiResponse(success=True, message='Signed in successfully', data=result.model_dump(by_alias=True))


@api_router.post('/auth/signup', response_model=ApiResponse, status_code=201, summary="Create an account")
def sign_up(request: SignUpRequest, ctx: AppContext = Depends(get_context)):
    if not request.email or not request.password:
        raise ValidationError('Email and password are required')

    result = ctx.auth.sign_up(request.email, request.password, request.displayName)
    try:
        ctx.profiles.create(result.uid, {"email": result.email, "displayName": result.display_name})
    except Exception as e:
        # Account exists; the profile can be created later through POST /api/users
        logger.error(f"Profile creation after sign up failed for user={result.uid}: {e}")

    return ApiResponse(success=True, message='Account created successfully', data=result.model_dump(by_alias=True))


@api_router.post('/auth/signout', response_model=ApiResponse, summary="Revoke the caller's session")
def sign_out(user: CurrentUser = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    ctx.auth.sign_out(user.token)
    return ApiResponse(success=True, message='Signed out successfully', data=None)


@api_router.post('/auth/reset-password', response_model=ApiResponse, summary="Send a password reset email")
def reset_password(request: PasswordResetRequest, ctx: AppContext = Depends(get_context)):
    if not request.email:
        raise ValidationError('Email is required')

    ctx.auth.reset_password(request.email)
    return ApiResponse(success=True, message='Password reset email sent', data={"email": request.email})


# Cookie endpoints
@api_router.post('/cookies/save', response_model=ApiResponse, summary="Save cookies for one domain")
def save_cookies(
    request: SaveCookiesRequest,
    user: CurrentUser = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    if not request.domain or request.cookies is None:
        raise ValidationError('Domain and cookies array are required')

    record = ctx.cookie_store.upsert(user.user_id, request.domain, request.cookies)
    return ApiResponse(
        success=True,
        message=f'Saved {record.cookie_count} cookies for {record.domain}',
        data={"cookieId": record.id, "domain": record.domain, "cookieCount": record.cookie_count},
    )


@api_router.get('/cookies/load/{domain}', response_model=ApiResponse, summary="Load saved cookies for one domain")
def load_cookies(domain: str, user: CurrentUser = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    record = ctx.cookie_store.fetch(user.user_id, domain)
    return ApiResponse(
        success=True,
        message=f'Loaded {record.cookie_count} cookies for {record.domain}',
        data=record.model_dump(mode='json', by_alias=True, include={'domain', 'cookies', 'saved_at', 'updated_at'}),
    )


@api_router.delete('/cookies/{domain}', response_model=ApiResponse, summary="Delete saved cookies for one domain")
def delete_cookies(domain: str, user: CurrentUser = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    ctx.cookie_store.remove(user.user_id, domain)
    return ApiResponse(success=True, message=f'Deleted cookies for {domain}', data={"domain": domain})


# Domain index and stats
@api_router.get('/domains', response_model=ApiResponse, summary="List domains with saved cookies")
def list_domains(user: CurrentUser = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    domains = ctx.cookie_store.domains(user.user_id)
    message = f'Found {len(domains)} domains' if domains else 'No domains found'
    return ApiResponse(success=True, message=message, data=domains)


@api_router.post('/domains/repair', response_model=ApiResponse, summary="Rebuild the domain list from saved records")
def repair_domains(user: CurrentUser = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    report = ctx.cookie_store.repair_index(user.user_id)
    message = 'Domain list repaired' if report.changed else 'Domain list already consistent'
    return ApiResponse(success=True, message=message, data=report.model_dump(by_alias=True))


@api_router.get('/stats', response_model=ApiResponse, summary="Cookie totals per domain")
def get_stats(user: CurrentUser = Depends(get_current_user), ctx: AppContext = Depends(get_context)):
    stats = ctx.cookie_store.stats_for(user.user_id)
    return ApiResponse(
        success=True,
        message='Stats retrieved successfully',
        data=stats.model_dump(mode='json', by_alias=True),
    )


# Sync
@api_router.post('/sync', response_model=ApiResponse, summary="Push a local storage snapshot")
async def sync_snapshot(
    request: SyncRequest,
    user: CurrentUser = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    report = await ctx.reconciler.reconcile(user.user_id, request.snapshot)
    return ApiResponse(
        success=True,
        message=f'Synced {report.synced_count} domains',
        data=report.model_dump(mode='json', by_alias=True),
    )


# Users
@api_router.post('/users', response_model=ApiResponse, status_code=201, summary="Create or update the caller's profile")
def create_user(
    user_data: Optional[Dict[str, Any]] = Body(default=None),
    user: CurrentUser = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    data = {"email": user.email, "displayName": user.name, **(user_data or {})}
    ctx.profiles.create(user.user_id, data)
    return ApiResponse(success=True, message='User created successfully', data={"userId": user.user_id})
