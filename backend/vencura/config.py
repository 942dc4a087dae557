from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite+aiosqlite:///./vencura.db"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    AUTO_CREATE_TABLES: bool = True

    # Ledger settings
    CHAIN_MODE: str = "simulated"
    SEPOLIA_RPC_URL: str = ""
    RPC_TIMEOUT_SECONDS: float = 15.0
    INITIAL_BALANCE: int = 1000

    # Key vault; validated when the vault is constructed, not here
    KEY_ENCRYPTION_SECRET: str = ""

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def convert_database_url(cls, v):
        """Convert postgresql:// to postgresql+asyncpg:// for async support"""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @field_validator('CHAIN_MODE', mode='before')
    @classmethod
    def normalize_chain_mode(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or "simulated"
        return v

settings = Settings()
