from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from typing import Dict

from cobrafacil.services.auth_service import auth_service
from cobrafacil.schemas import UserCreate, UserUpdate, UserResponse, Token
from cobrafacil.core.auth_dependencies import AccessContext, get_current_user, require_owner
from cobrafacil.services.activity_service import activity_service
import logging

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

logger = logging.getLogger(__name__)


# Registers a new owner account with email and password
@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def signup_user(user_data: UserCreate) -> UserResponse:
    try:
        created_user = await auth_service.register_user(user_data)
        try:
            await activity_service.log_activity(
                owner_id=created_user["id"],
                action="signup",
                actor_id=created_user["id"],
                actor_name=created_user["full_name"],
            )
        except Exception:
            logger.exception("Failed to write signup activity log")
        return UserResponse(**created_user)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during signup: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred during registration"
        )


# Authenticates user credentials and returns an access token
@router.post("/login", response_model=Token, status_code=status.HTTP_200_OK)
async def login_user(form_data: OAuth2PasswordRequestForm = Depends()) -> Token:
    try:
        token_data = await auth_service.login_user(form_data.username, form_data.password)
        user = token_data["user"]

        try:
            await activity_service.log_activity(
                owner_id=user["owner_id"],
                action="login",
                actor_id=user["id"],
                actor_name=user["full_name"],
                is_employee=user["is_employee"],
            )
        except Exception:
            logger.exception("Failed to write login activity log")

        return Token(
            access_token=token_data["access_token"],
            token_type=token_data["token_type"],
            user=UserResponse(**user),
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during login: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred during login"
        )


# Retrieves the authenticated user's profile information
@router.get("/me", response_model=UserResponse, status_code=status.HTTP_200_OK)
async def get_current_user_info(current_user: Dict = Depends(get_current_user)) -> UserResponse:
    try:
        return UserResponse(**await auth_service.get_profile(current_user["id"]))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error fetching user info: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while fetching user information"
        )


# Updates the owner's profile, PIX key and WhatsApp instance token
@router.put("/me", response_model=UserResponse, status_code=status.HTTP_200_OK)
async def update_current_user(data: UserUpdate, ctx: AccessContext = Depends(require_owner)) -> UserResponse:
    try:
        return UserResponse(**await auth_service.update_profile(ctx.user_id, data))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error updating profile: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while updating the profile"
        )


# Generates a new access token for the authenticated user
@router.post("/refresh", response_model=Token, status_code=status.HTTP_200_OK)
async def refresh_token(current_user: Dict = Depends(get_current_user)) -> Token:
    try:
        token_data = await auth_service.refresh_user_token(current_user["email"])
        return Token(
            access_token=token_data["access_token"],
            token_type=token_data["token_type"]
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during token refresh: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred during token refresh"
        )
