from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    # Database
    DATABASE_URL: Optional[str] = None
    PGHOST: Optional[str] = None
    PGDATABASE: Optional[str] = None
    PGUSER: Optional[str] = None
    PGPASSWORD: Optional[str] = None
    PGSSLMODE: str = "require"
    
    # Security
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    BCRYPT_ROUNDS: int = 12
    
    # Application
    PROJECT_NAME: str = "Railstay Booking Platform"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    
    # Booking rules
    HOTEL_MAX_BOOKING_DAYS: int = 7
    PAYMENT_PASSWORD_MAX_ATTEMPTS: int = 5
    PAYMENT_PASSWORD_LENGTH: int = 6
    UNPAID_TRANSACTION_TIMEOUT_MINUTES: int = 30
    
    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.PGUSER}:{self.PGPASSWORD}@{self.PGHOST}/{self.PGDATABASE}?sslmode={self.PGSSLMODE}"
    
    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
