"""Runtime settings and logging setup.

Settings come from the environment (optionally a ``.env`` file) and are
passed explicitly to the components that need them.
"""
import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else default


@dataclass
class Settings:
    page_timeout: float = 10.0
    document_timeout: float = 120.0
    max_skipped_page_ratio: float = 0.25
    max_workers: int = 4
    detection_threshold: int = 30
    reference_page_width: float = 850.0
    balance_tolerance_floor: int = 10000
    balance_tolerance_ratio: float = 0.01
    database_url: str = "sqlite:///bankrecon.db"
    log_dir: str = "logs"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        load_dotenv(dotenv_path)  # Loads variables from .env when present
        return cls(
            page_timeout=_env_float("RECON_PAGE_TIMEOUT", cls.page_timeout),
            document_timeout=_env_float("RECON_DOCUMENT_TIMEOUT", cls.document_timeout),
            max_skipped_page_ratio=_env_float("RECON_MAX_SKIPPED_PAGE_RATIO", cls.max_skipped_page_ratio),
            max_workers=_env_int("RECON_MAX_WORKERS", cls.max_workers),
            detection_threshold=_env_int("RECON_DETECTION_THRESHOLD", cls.detection_threshold),
            reference_page_width=_env_float("RECON_REFERENCE_PAGE_WIDTH", cls.reference_page_width),
            balance_tolerance_floor=_env_int("RECON_BALANCE_TOLERANCE_FLOOR", cls.balance_tolerance_floor),
            balance_tolerance_ratio=_env_float("RECON_BALANCE_TOLERANCE_RATIO", cls.balance_tolerance_ratio),
            database_url=os.environ.get("RECON_DATABASE_URL", cls.database_url),
            log_dir=os.environ.get("RECON_LOG_DIR", cls.log_dir),
            log_level=os.environ.get("RECON_LOG_LEVEL", cls.log_level).upper(),
        )


def configure_logging(level: str = "INFO", log_dir: Optional[str] = "logs") -> None:
    """Console handler at ``level`` plus a DEBUG file handler under ``log_dir``.

    Handlers installed by an earlier call are replaced, not duplicated.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in root_logger.handlers[:]:
        if getattr(handler, "_bankrecon", False):
            root_logger.removeHandler(handler)
            handler.close()
    log_formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(log_formatter)
    console_handler._bankrecon = True
    root_logger.addHandler(console_handler)

    if log_dir:
        if not os.path.exists(log_dir):
            os.makedirs(log_dir)
        file_handler = logging.FileHandler(os.path.join(log_dir, 'bankrecon.log'), mode='a')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(log_formatter)
        file_handler._bankrecon = True
        root_logger.addHandler(file_handler)
