from __future__ import annotations
import logging
from logging.handlers import RotatingFileHandler
import os, functools, inspect, re, time
from pathlib import Path

_DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()
_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", "1048576"))
_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "3"))
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# api-keys en query string; los parámetros con secretos se enmascaran por nombre en log_function
_API_KEY_RE = re.compile(r"(?i)(api[-_]?key[=:]\s*)([^\s&,;'\"]+)")
# token del bot dentro de las URLs de api.telegram.org
_BOT_TOKEN_RE = re.compile(r"(/bot)\d+:[\w-]+")
_MAX_ARG_REPR = 200
_SENSITIVE_ARGS = {"secret_key", "wallet_secret", "private_key", "api_key"}


def mask_secrets(text: str) -> str:
    """Oculta api-keys y el token del bot antes de escribirlos en el log."""
    text = _BOT_TOKEN_RE.sub(r"\1***", text)
    return _API_KEY_RE.sub(r"\1***", text)


def _short(value) -> str:
    txt = mask_secrets(repr(value))
    return txt if len(txt) <= _MAX_ARG_REPR else txt[:_MAX_ARG_REPR] + "…"


class _RedactFilter(logging.Filter):
    """Último filtro antes de consola/fichero: nada con pinta de secreto sale del proceso."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = mask_secrets(record.getMessage())
        record.args = None
        return True


class _LoggerManager:
    def __init__(self) -> None:
        self._configured = False
        self._module_handlers: dict[str, logging.Handler] = {}
        self._log_dir = os.getenv("LOG_DIR", "./logs")
        self._level = getattr(logging, _DEFAULT_LEVEL, logging.DEBUG)
        self._redact = _RedactFilter()

    def _handler(self, handler: logging.Handler, fmt: str) -> logging.Handler:
        handler.setLevel(self._level)
        handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=_DATEFMT))
        handler.addFilter(self._redact)
        return handler

    def _ensure(self) -> None:
        if self._configured:
            return

        root = logging.getLogger()
        root.setLevel(self._level)
        if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
            root.addHandler(self._handler(logging.StreamHandler(), "%(asctime)s | %(levelname)s | %(name)s | %(message)s"))

        # httpx (python-telegram-bot) y urllib3 (requests, solana) son muy verbosos en DEBUG
        for noisy in ("httpx", "httpcore", "urllib3"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

        Path(self._log_dir).mkdir(parents=True, exist_ok=True)
        self._configured = True

    def setup_logger(self, name: str) -> logging.Logger:
        """Logger del módulo ``name``: consola (vía root) + ``LOG_DIR/<name>.log`` rotativo."""
        self._ensure()
        logger = logging.getLogger(name)
        if name in self._module_handlers:
            return logger

        file_path = os.path.join(self._log_dir, f"{name.replace('.', '_').replace('/', '_')}.log")
        try:
            fh = RotatingFileHandler(file_path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8")
        except OSError as e:
            logging.getLogger(__name__).warning(f"No se pudo abrir {file_path}: {e}")
            return logger

        self._module_handlers[name] = self._handler(fh, "%(asctime)s | %(levelname)s | %(message)s")
        logger.addHandler(fh)
        logger.propagate = True  # conserva salida a consola
        return logger

logger_manager = _LoggerManager()

def log_function(func):
    """Traza entrada/salida (y duración) de funciones síncronas y corrutinas."""
    sig = inspect.signature(func)

    def _args_txt(args, kwargs) -> str:
        try:
            bound = sig.bind_partial(*args, **kwargs).arguments
        except TypeError:
            return "(args no enlazables)"
        return ", ".join(
            f"{k}=***" if k in _SENSITIVE_ARGS else f"{k}={_short(v)}"
            for k, v in bound.items() if k != "self"
        )

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger = logger_manager.setup_logger(func.__module__)
            logger.debug(f"→ {func.__name__}({_args_txt(args, kwargs)})")
            t0 = time.time()
            try:
                result = await func(*args, **kwargs)
                logger.debug(f"← {func.__name__} ({(time.time()-t0)*1000:.1f} ms)")
                return result
            except Exception as e:
                logger.exception(f"✗ {func.__name__}: {mask_secrets(str(e))}")
                raise
        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logger_manager.setup_logger(func.__module__)
        logger.debug(f"→ {func.__name__}({_args_txt(args, kwargs)})")
        t0 = time.time()
        try:
            result = func(*args, **kwargs)
            logger.debug(f"← {func.__name__} ({(time.time()-t0)*1000:.1f} ms)")
            return result
        except Exception as e:
            logger.exception(f"✗ {func.__name__}: {mask_secrets(str(e))}")
            raise
    return wrapper
