import configparser
import os

from .logger import get_logger

logger = get_logger(__name__)

CONFIG_DIR_ENV = "NORMY_CONFIG_DIR"

DEFAULT_ANALISIS = {
    'max_workers': '4',
    'page_size': '1000',
}


def get_base_dir() -> str:
    """
    Returns the directory holding config.ini and db.env.
    NORMY_CONFIG_DIR wins; otherwise the project root (three levels up from src/normy_analytics/utils/).
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return override
    current_dir = os.path.dirname(os.path.abspath(__file__))
    return os.path.dirname(os.path.dirname(os.path.dirname(current_dir)))


def get_config_path(filename: str) -> str:
    """Returns the absolute path for an external configuration file."""
    return os.path.join(get_base_dir(), filename)


def load_config(config_path: str = None) -> configparser.ConfigParser:
    """
    Loads the configuration from 'config.ini'.

    Sections:
        [SUPABASE]  url, key          (required, REST access used to load the snapshot)
        [ANALISIS]  max_workers, page_size  (optional, defaults injected)

    Raises:
        FileNotFoundError: the file does not exist.
        ValueError: the [SUPABASE] section is missing.
    """
    if config_path is None:
        config_path = get_config_path('config.ini')

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found at: {config_path}")

    config = configparser.ConfigParser()
    config.read(config_path, encoding='utf-8')

    if 'SUPABASE' not in config:
        raise ValueError("El archivo config.ini no tiene la sección [SUPABASE]")

    # Valores por defecto para que el pipeline no rompa
    if 'ANALISIS' not in config:
        config['ANALISIS'] = DEFAULT_ANALISIS
    else:
        for key, value in DEFAULT_ANALISIS.items():
            config['ANALISIS'].setdefault(key, value)

    logger.info(f"Configuration loaded successfully from: {config_path}")
    return config
