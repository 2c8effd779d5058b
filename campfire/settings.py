import os

from dotenv import load_dotenv
from pydantic import BaseModel


class Settings(BaseModel):
    timeout_seconds: float = 30.0
    max_redirects: int = 10
    user_agent: str = "Campfire/1.0"
    ssl_verify: bool = True
    default_extension: str = ".campfire"

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "Settings":
        """
        Build settings from the process environment, after loading a .env file.
        Unset variables keep their defaults.
        """
        load_dotenv(dotenv_path)
        values = {}
        if os.getenv("CAMPFIRE_TIMEOUT"):
            values["timeout_seconds"] = os.getenv("CAMPFIRE_TIMEOUT")
        if os.getenv("CAMPFIRE_MAX_REDIRECTS"):
            values["max_redirects"] = os.getenv("CAMPFIRE_MAX_REDIRECTS")
        if os.getenv("CAMPFIRE_USER_AGENT"):
            values["user_agent"] = os.getenv("CAMPFIRE_USER_AGENT")
        values["ssl_verify"] = os.getenv("SSL_VERIFY", "true").lower() != "false"
        return cls.model_validate(values)
