# ==============================================================================
# CONFIGURACIÓN DE LA APLICACIÓN
# ==============================================================================
# Toda la configuración sale de variables de entorno (opcionalmente desde un
# archivo .env). Nunca hardcodear la clave secreta en producción:
#   export PDV_SECRET_KEY="clave_muy_larga_y_aleatoria"
# ==============================================================================

import os
from dataclasses import dataclass

from dotenv import load_dotenv


BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

DEFAULT_SECRET = "app_pdv_dev_secret_key_change_in_production"
DEFAULT_DATA_DIR = os.path.join(BASE_DIR, "data")
DEFAULT_LOG_FILE = os.path.join(BASE_DIR, "logs", "pdv.log")

VALID_LOG_LEVELS = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


@dataclass(frozen=True)
class AppConfig:
    """
    Configuración inmutable de la aplicación.

    Attributes:
        data_dir: Carpeta donde el store JSON guarda las tablas
        secret_key: Clave de sesión de Flask
        log_level: Nivel de logging (DEBUG, INFO, ...)
        log_file: Ruta del log rotativo
        enable_profiling: Activa el profiling de rutas y funciones
        store_lock_timeout: Segundos máximos de espera por escritura
        host: Host del servidor de desarrollo
        port: Puerto del servidor de desarrollo
        debug: Modo debug de Flask
    """
    data_dir: str = DEFAULT_DATA_DIR
    secret_key: str = DEFAULT_SECRET
    log_level: str = "INFO"
    log_file: str = DEFAULT_LOG_FILE
    enable_profiling: bool = True
    store_lock_timeout: float = 5.0
    host: str = "0.0.0.0"
    port: int = 5000
    debug: bool = False

    @property
    def uses_default_secret(self) -> bool:
        return self.secret_key == DEFAULT_SECRET

    @classmethod
    def from_env(cls, env_file: str = ".env") -> "AppConfig":
        """Construye la configuración desde el entorno y la valida."""
        load_dotenv(env_file, override=False)
        config = cls(
            data_dir=os.getenv("PDV_DATA_DIR", DEFAULT_DATA_DIR).strip(),
            secret_key=os.getenv("PDV_SECRET_KEY") or DEFAULT_SECRET,
            log_level=os.getenv("PDV_LOG_LEVEL", "INFO").strip().upper(),
            log_file=os.getenv("PDV_LOG_FILE", DEFAULT_LOG_FILE).strip(),
            enable_profiling=os.getenv("PDV_ENABLE_PROFILING", "true").lower() == "true",
            store_lock_timeout=float(os.getenv("PDV_STORE_LOCK_TIMEOUT", "5")),
            host=os.getenv("FLASK_HOST", "0.0.0.0"),
            port=int(os.getenv("FLASK_PORT", "5000")),
            debug=os.getenv("FLASK_DEBUG", "0") == "1",
        )
        config.validate()
        return config

    def validate(self) -> None:
        if not self.data_dir:
            raise ValueError("PDV_DATA_DIR no puede estar vacío")
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(f"PDV_LOG_LEVEL inválido: {self.log_level}")
        if self.store_lock_timeout <= 0:
            raise ValueError("PDV_STORE_LOCK_TIMEOUT debe ser mayor a 0")
        if not 0 < self.port < 65536:
            raise ValueError("FLASK_PORT fuera de rango")

