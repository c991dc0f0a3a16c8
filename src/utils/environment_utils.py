from dotenv import load_dotenv
import os

# Utils
from utils.log_utils import LogUtil

# Bundled default workflows live at the repository root
DEFAULT_WORKFLOWS_DIR = os.path.normpath(
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "..", "workflows")
)


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").strip().lower() in ("1", "true", "yes")


class EnvironmentUtils:
    """
    Utility class for environment variables
    """

    def __init__(self, log_util: LogUtil):

        # .env values never override variables already set in the process
        load_dotenv()

        self.log_util = log_util

        self.env_variables = {
            # Server
            "APP_ENV": os.getenv("APP_ENV", "production"),
            "HOST": os.getenv("HOST", "0.0.0.0"),
            "PORT": _env_int("PORT", 8018),
            "DEBUG": _env_bool("DEBUG", False),

            # Logging
            "ORG_ID": os.getenv("ORG_ID", "botflow"),
            "LOKI_URL": os.getenv("LOKI_URL", ""),

            # Storage: "memory" or "mongo"
            "STORAGE_BACKEND": os.getenv("STORAGE_BACKEND", "memory").lower(),
            "MONGO_USERNAME": os.getenv("MONGO_USERNAME", ""),
            "MONGO_PASSWORD": os.getenv("MONGO_PASSWORD", ""),
            "MONGO_AUTH_SOURCE": os.getenv("MONGO_AUTH_SOURCE", "admin"),
            "MONGO_HOST": os.getenv("MONGO_HOST", "localhost"),
            "MONGO_PORT": _env_int("MONGO_PORT", 27017),
            "MONGO_DB_NAME": os.getenv("MONGO_DB_NAME", "botflow_db"),
            "DEFAULT_WORKFLOWS_DIR": os.getenv("DEFAULT_WORKFLOWS_DIR", DEFAULT_WORKFLOWS_DIR),

            # Engine
            "PACING_ENABLED": _env_bool("PACING_ENABLED", True),
            "MAX_DELAY_MS": _env_int("MAX_DELAY_MS", 60000),
            "MAX_AUTO_STEPS": _env_int("MAX_AUTO_STEPS", 500),

            # Sessions
            "SESSION_TTL_SECONDS": _env_int("SESSION_TTL_SECONDS", 1800),
            "MAX_SESSIONS": _env_int("MAX_SESSIONS", 1000),
        }

    def get_env_variable(self, variable_name: str) -> str | int | bool:
        if variable_name not in self.env_variables:
            self.log_util.error(service_name="EnvironmentUtils", message=f"Environment variable {variable_name} not found")
            raise ValueError(f"Environment variable {variable_name} not found")
        return self.env_variables[variable_name]
