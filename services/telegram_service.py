from __future__ import annotations
from telegram import Bot, LinkPreviewOptions
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError

from utils.logger import logger_manager

logger = logger_manager.setup_logger(__name__)

_NO_PREVIEW = LinkPreviewOptions(is_disabled=True)


class TelegramNotifier:
    """
    Canal de salida hacia el usuario. Los controladores sólo conocen
    ``send(user_id, text)``; aquí se decide el formato (Markdown) y se
    absorben los fallos de envío para no romper el flujo del trade.
    """
    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    async def send(self, user_id: str, text: str, markdown: bool = True) -> None:
        parse_mode = ParseMode.MARKDOWN if markdown else None
        try:
            await self.bot.send_message(chat_id=user_id, text=text, parse_mode=parse_mode,
                                        link_preview_options=_NO_PREVIEW)
        except BadRequest as e:
            # Markdown mal formado (símbolos raros): reintento en texto plano
            if markdown:
                logger.warning(f"Markdown rechazado para {user_id}: {e}; reenviando en plano")
                await self.send(user_id, text, markdown=False)
            else:
                logger.error(f"❌ Error enviando Telegram a {user_id}: {e}")
        except TelegramError as e:
            logger.error(f"❌ Error enviando Telegram a {user_id}: {e}")
