from domain.models import NotificationSettings

from .console_notifier import ConsoleNotifier
from .telegram_notifier import TelegramApiError, TelegramBotConfig, TelegramNotifier


def build_notifier(settings: NotificationSettings) -> ConsoleNotifier | TelegramNotifier:
    if settings.channel == "telegram":
        return TelegramNotifier(
            TelegramBotConfig(bot_token=settings.bot_token or "", chat_id=settings.chat_id or "")
        )
    return ConsoleNotifier()


__all__ = [
    "ConsoleNotifier",
    "TelegramApiError",
    "TelegramBotConfig",
    "TelegramNotifier",
    "build_notifier",
]
