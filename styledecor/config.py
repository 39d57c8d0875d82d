from pydantic import BaseModel
import os
from dotenv import load_dotenv
load_dotenv()  # carga el archivo .env de la raíz


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    app_name: str = os.getenv("APP_NAME", "StyleDecor")
    env: str = os.getenv("APP_ENV", "dev")
    mongodb_uri: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    db_name: str = os.getenv("DB_NAME", "styledecor")
    jwt_secret: str = os.getenv("JWT_SECRET", "change-me")
    jwt_expires_hours: int = int(os.getenv("JWT_EXPIRES_HOURS", "168"))
    frontend_base_url: str = os.getenv("FRONTEND_BASE_URL", "http://localhost:5173")

    # Pasarela de pago: "mock" (desarrollo) o "stripe"
    payment_gateway: str = os.getenv("PAYMENT_GATEWAY", "mock").lower()
    stripe_secret_key: str = os.getenv("STRIPE_SECRET_KEY", "")
    currency: str = os.getenv("PAYMENT_CURRENCY", "bdt").lower()

    # Si está activo, el decorador solo puede avanzar el estado del proyecto
    enforce_forward_project_status: bool = _env_bool("ENFORCE_FORWARD_PROJECT_STATUS")

    # Cuenta de administrador para /dev/seed-data
    admin_email: str = os.getenv("ADMIN_EMAIL", "admin@styledecor.com")
    admin_password: str = os.getenv("ADMIN_PASSWORD", "admin123")


_settings: Settings | None = None
def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
