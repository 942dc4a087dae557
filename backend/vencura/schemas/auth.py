from typing import Optional
from pydantic import BaseModel

# Fields are optional so missing credentials surface as the service's 400, not a 422
class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class UserOut(BaseModel):
    id: str
    email: str

class TokenResponse(BaseModel):
    token: str
    user: UserOut
    token_type: str = "bearer"
