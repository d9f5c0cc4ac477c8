from fastapi import HTTPException, status
from cobrafacil.database.models import Employee, User
from cobrafacil.schemas import UserCreate, UserUpdate
from cobrafacil.core import hash_password, verify_password, create_access_token, is_valid_password, MIN_PASSWORD_LENGTH
from cobrafacil.helpers.object_id import parse_object_id
from typing import Dict, Optional
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


def user_to_dict(user: User, employee: Optional[Employee] = None) -> Dict:
    data = {
        "id": str(user.id),
        "email": user.email,
        "full_name": user.full_name,
        "phone": user.phone,
        "company_name": user.company_name,
        "is_active": user.is_active,
        "is_employee": employee is not None,
        "owner_id": employee.owner_id if employee else str(user.id),
        "permissions": [getattr(p, "value", p) for p in employee.permissions] if employee else [],
    }
    return data


class AuthService:
    # Register a new owner account with email and password validation
    @staticmethod
    async def register_user(user_data: UserCreate) -> Dict:
        existing_user = await User.find_one(User.email == user_data.email)

        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        if not is_valid_password(user_data.password):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

        try:
            hashed_password = hash_password(user_data.password)
        except ValueError:
            logger.warning("Password hashing failed")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid password format"
            )

        new_user = User(
            email=user_data.email,
            full_name=user_data.full_name,
            hashed_password=hashed_password,
            phone=user_data.phone,
            company_name=user_data.company_name,
            created_at=datetime.utcnow()
        )

        try:
            await new_user.insert()
            logger.debug("User saved with ID: %s", new_user.id)
        except Exception as e:
            logger.error("User save failed: %s", e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="User registration failed"
            )

        result = user_to_dict(new_user)
        result["message"] = "User registered successfully"
        return result

    # Authenticate user and generate access token
    @staticmethod
    async def login_user(email: str, password: str) -> Dict:
        logger.debug("Login attempt for email: %s", email)

        user = await User.find_one(User.email == email)

        if not user or not verify_password(password, user.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Inactive account"
            )

        employee = await Employee.find_one({"employee_user_id": str(user.id)})
        if employee is not None and not employee.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Employee access is disabled"
            )

        try:
            access_token = create_access_token(data={"sub": user.email})
            logger.debug("Created JWT access token for sub: %s", user.email)
        except ValueError as e:
            logger.error("Token creation failed: %s", e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not create access token"
            )
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "user": user_to_dict(user, employee)
        }

    # Retrieve user information by email address
    @staticmethod
    async def get_user_by_email(email: str) -> Optional[Dict]:
        user = await User.find_one(User.email == email)
        if not user:
            return None

        return {
            "id": str(user.id),
            "email": user.email,
            "full_name": user.full_name,
            "phone": user.phone,
            "company_name": user.company_name,
            "is_active": user.is_active,
        }

    # Profile of the caller, with employee details when the login belongs to an employee
    @staticmethod
    async def get_profile(user_id: str) -> Dict:
        user = await User.get(parse_object_id(user_id, "User"))
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        employee = await Employee.find_one({"employee_user_id": user_id})
        return user_to_dict(user, employee)

    # Updates the owner's profile and WhatsApp settings
    @staticmethod
    async def update_profile(user_id: str, data: UserUpdate) -> Dict:
        user = await User.get(parse_object_id(user_id, "User"))
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

        for field in data.model_fields_set:
            setattr(user, field, getattr(data, field))
        user.updated_at = datetime.utcnow()
        await user.save()
        logger.info("Profile updated for user %s (%s)", user_id, ", ".join(sorted(data.model_fields_set)))

        employee = await Employee.find_one({"employee_user_id": user_id})
        return user_to_dict(user, employee)

    # Generate a new access token for existing user
    @staticmethod
    async def refresh_user_token(email: str) -> Dict:
        user = await User.find_one(User.email == email)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )

        try:
            access_token = create_access_token(data={"sub": email})
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not create access token"
            )

        return {
            "access_token": access_token,
            "token_type": "bearer"
        }

auth_service = AuthService()
