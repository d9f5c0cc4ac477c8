from cobrafacil.schemas.user_schemas import UserCreate, UserUpdate, UserResponse, Token, TokenData

__all__ = ["UserCreate", "UserUpdate", "UserResponse", "Token", "TokenData"]
