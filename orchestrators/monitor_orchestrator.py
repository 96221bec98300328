# orchestrators/monitor_orchestrator.py
from __future__ import annotations
import asyncio
import uuid
from typing import Any, Callable, Optional

from models.trade_session import TradeSession
from utils.errors import GatewayError
from utils.formatting import format_number
from utils.logger import logger_manager

logger = logger_manager.setup_logger(__name__)

NEAR_INTERVAL_SECS = 2.0
FAR_INTERVAL_SECS = 5.0
NEAR_BAND = 0.1


def next_check_delay(current: float, target: float,
                     near_interval: float = NEAR_INTERVAL_SECS,
                     far_interval: float = FAR_INTERVAL_SECS,
                     near_band: float = NEAR_BAND) -> float:
    """Cadencia adaptativa: cerca del objetivo (≤10% restante) se mira más a menudo."""
    remaining = target - current
    if remaining <= target * near_band:
        return near_interval
    return far_interval


def _default_call_later(delay: float, callback: Callable[..., Any], *args: Any) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback, *args)


class MonitorOrchestrator:
    def __init__(self, sessions, market_service, sell_controller, notifier,
                 near_interval: float = NEAR_INTERVAL_SECS,
                 far_interval: float = FAR_INTERVAL_SECS,
                 near_band: float = NEAR_BAND,
                 call_later: Optional[Callable[..., Any]] = None):
        """
        :param sessions: Registro de sesiones por usuario (SessionRepository)
        :param market_service: Servicio de market cap (MarketService)
        :param sell_controller: Ejecuta la liquidación al alcanzar el objetivo
        :param notifier: Canal de mensajes al usuario
        :param call_later: Planificador de un solo disparo (por defecto loop.call_later)
        """
        self.sessions = sessions
        self.market = market_service
        self.seller = sell_controller
        self.notifier = notifier
        self.near_interval = near_interval
        self.far_interval = far_interval
        self.near_band = near_band
        self._call_later = call_later or _default_call_later

    # -------- ciclo de vida --------
    def start(self, session: TradeSession) -> str:
        """Arranca la monitorización de una sesión ya en estado ``monitoring``."""
        session.monitor_id = uuid.uuid4().hex
        logger.info(
            f"[{session.user_id}] Monitorizando {session.display_name}: objetivo "
            f"${format_number(session.target_market_cap)} (run {session.monitor_id[:8]})"
        )
        self._schedule(session, 0)
        return session.monitor_id

    def stop(self, user_id: str) -> bool:
        """Cancela la comprobación pendiente y devuelve la sesión a ``idle``.

        Con la venta ya en vuelo no hace nada: la liquidación cierra la sesión.
        """
        session = self.sessions.get(user_id)
        if session is None or session.is_liquidating:
            return False
        return self.sessions.reset(user_id)

    def _owns(self, user_id: str, monitor_id: str) -> Optional[TradeSession]:
        session = self.sessions.get(user_id)
        if session is None or not session.is_monitoring or session.monitor_id != monitor_id:
            return None
        return session

    def _schedule(self, session: TradeSession, delay: float) -> None:
        handle = self._call_later(delay, self._fire, session.user_id, session.monitor_id)
        session.set_timer(handle)

    def _fire(self, user_id: str, monitor_id: str) -> None:
        session = self._owns(user_id, monitor_id)
        if session is None:
            return
        session.timer_fired()
        task = asyncio.get_running_loop().create_task(self.check(user_id, monitor_id))
        session.track_task(task)

    # -------- tick --------
    async def check(self, user_id: str, monitor_id: str) -> Optional[float]:
        """
        Una comprobación de market cap. Devuelve el retardo de la siguiente
        comprobación, o None si el ciclo terminó (venta, error o cancelación).
        """
        session = self._owns(user_id, monitor_id)
        if session is None:
            return None
        token = session.token_address
        try:
            try:
                info = await asyncio.to_thread(self.market.get_token_info, token)
            except GatewayError as e:
                return await self._abort(user_id, monitor_id, f"⚠️ Monitoring error: {e}")

            # la sesión pudo cancelarse mientras esperábamos a Dexscreener
            session = self._owns(user_id, monitor_id)
            if session is None:
                logger.debug(f"[{user_id}] Tick descartado: run {monitor_id[:8]} ya no está activo")
                return None

            current = info.market_cap
            target = session.target_market_cap
            logger.info(f"Checking {session.display_name}: ${format_number(current)} / ${format_number(target)}")

            if current >= target:
                session.cancel_timer()
                session.mark_liquidating()
                await self.seller.liquidate(session, info)
                return None

            delay = next_check_delay(current, target, self.near_interval, self.far_interval, self.near_band)
            self._schedule(session, delay)
            return delay
        except Exception as e:
            logger.exception(f"[{user_id}] Error inesperado monitorizando {token}: {e}")
            return await self._abort(user_id, monitor_id, f"⚠️ Monitoring error: {e}")

    async def _abort(self, user_id: str, monitor_id: str, message: str) -> None:
        session = self._owns(user_id, monitor_id)
        if session is None:
            return None
        buy_tx = session.buy_tx
        self.sessions.reset(user_id, monitor_id)
        logger.error(f"[{user_id}] Monitorización abortada: {message}")
        logger.warning(f"[{user_id}] Trade {buy_tx} queda 'pending' (requiere conciliación manual)")
        await self.notifier.send(user_id, message, markdown=False)
        return None
