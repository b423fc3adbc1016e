import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3001"))

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:3000"])

VENDOR_ENVIRONMENTS = {
    "sandbox": {
        "api_base_url": "https://api-developer-sandbox.zocdoc.com",
        "auth_url": "https://auth-api-developer-sandbox.zocdoc.com/oauth/token",
        "audience": "https://api-developer-sandbox.zocdoc.com/",
    },
    "production": {
        "api_base_url": "https://api.zocdoc.com",
        "auth_url": "https://auth-api.zocdoc.com/oauth/token",
        "audience": "https://api.zocdoc.com/",
    },
}

VENDOR_ENVIRONMENT = os.getenv("VENDOR_ENVIRONMENT", "sandbox").strip().lower()
_environment_defaults = VENDOR_ENVIRONMENTS.get(VENDOR_ENVIRONMENT, VENDOR_ENVIRONMENTS["sandbox"])

VENDOR_API_BASE_URL = os.getenv("VENDOR_API_BASE_URL", _environment_defaults["api_base_url"]).rstrip("/")
VENDOR_AUTH_URL = os.getenv("VENDOR_AUTH_URL", _environment_defaults["auth_url"])
VENDOR_AUDIENCE = os.getenv("VENDOR_AUDIENCE", _environment_defaults["audience"])
VENDOR_SCOPE = os.getenv("VENDOR_SCOPE", "external.appointment.read")
VENDOR_WEBHOOK_MOCK_PATH = os.getenv("VENDOR_WEBHOOK_MOCK_PATH", "/v1/webhook/mock")

# Seconds. Search, availability and booking are slower on the vendor side.
AUTH_TIMEOUT_SECONDS = float(os.getenv("AUTH_TIMEOUT_SECONDS", "10"))
DEFAULT_TIMEOUT_SECONDS = float(os.getenv("DEFAULT_TIMEOUT_SECONDS", "10"))
SEARCH_TIMEOUT_SECONDS = float(os.getenv("SEARCH_TIMEOUT_SECONDS", "15"))

GATEWAY_BASE_URL = os.getenv("GATEWAY_BASE_URL", f"http://localhost:{PORT}/api").rstrip("/")
CLIENT_TIMEOUT_SECONDS = float(os.getenv("CLIENT_TIMEOUT_SECONDS", "15"))

CREDENTIALS_DATABASE_URL = os.getenv("CREDENTIALS_DATABASE_URL", "sqlite:///./credentials.db")
REMEMBER_CREDENTIALS = _get_bool(os.getenv("REMEMBER_CREDENTIALS"), default=True)


def validate_runtime_config() -> None:
    if VENDOR_ENVIRONMENT not in VENDOR_ENVIRONMENTS:
        raise RuntimeError(
            f"VENDOR_ENVIRONMENT must be one of {sorted(VENDOR_ENVIRONMENTS)}, got {VENDOR_ENVIRONMENT!r}."
        )
    if APP_ENV.lower() == "production" and VENDOR_ENVIRONMENT == "sandbox":
        raise RuntimeError("APP_ENV=production requires VENDOR_ENVIRONMENT=production.")
