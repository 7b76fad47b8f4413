from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./fence_bom.db"
    LOG_LEVEL: str = "INFO"

    # Formula engine
    MAX_IF_PASSES: int = 20  # Bound on IF(...) rewrite passes per formula
    UNORDERED_COMPONENT_RANK: int = 999  # Components missing from EXECUTION_ORDER run last

    # Seed the default fence catalog on startup when tables are empty
    AUTO_SEED: bool = True

    class Config:
        env_file = ".env"


settings = Settings()
