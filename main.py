# main.py
from __future__ import annotations
import os
import sys
import signal
import subprocess
from pathlib import Path

from dotenv import load_dotenv

# ---- carga .env antes de leer la configuración ----
load_dotenv()

from services.telegram_bot import TelegramBot
from utils.config import PROJECT_ROOT, Settings, get_settings
from utils.logger import logger_manager

logger = logger_manager.setup_logger(__name__)

STREAMLIT_APP = os.getenv("STREAMLIT_APP", str(PROJECT_ROOT / "streamlit_app" / "dashboard.py"))


# ------------------------------
# Lanzadores
# ------------------------------
def start_streamlit_process(settings: Settings) -> subprocess.Popen | None:
    """
    Lanza el panel de trades como proceso aparte (solo lectura sobre DB_PATH).
    """
    app_path = Path(STREAMLIT_APP)
    if not app_path.exists():
        logger.error(f"Streamlit app no encontrada: {app_path}")
        return None
    cmd = [
        sys.executable, "-m", "streamlit", "run", str(app_path),
        "--server.headless=true",
        f"--server.port={settings.streamlit_port}",
    ]
    logger.info(f"Lanzando Streamlit: {' '.join(cmd)}")
    env = dict(os.environ, DB_PATH=str(settings.db_path))
    return subprocess.Popen(cmd, cwd=str(PROJECT_ROOT), env=env)


def stop_streamlit_process(proc: subprocess.Popen | None) -> None:
    if proc is None or proc.poll() is not None:
        return
    try:
        if os.name == "nt":
            proc.terminate()
        else:
            proc.send_signal(signal.SIGTERM)
        proc.wait(timeout=3)
    except subprocess.TimeoutExpired:
        proc.kill()
    except OSError as e:
        logger.error(f"No se pudo cerrar Streamlit: {e}")


# ------------------------------
# Main
# ------------------------------
def main() -> None:
    settings = get_settings()
    logger.info("🚀 Iniciando Market Cap Trader Bot...")

    streamlit_proc = start_streamlit_process(settings) if settings.enable_dashboard else None
    try:
        # run_polling instala sus propios manejadores de SIGINT/SIGTERM en el hilo principal
        TelegramBot(settings).run()
    finally:
        logger.info("🛑 Deteniendo servicios...")
        stop_streamlit_process(streamlit_proc)
        logger.info("✅ Apagado completado.")


if __name__ == "__main__":
    main()
