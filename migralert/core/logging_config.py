import logging

from migralert.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging() -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT
    )
    # Twilio logs full request bodies (message text, phone numbers) at INFO
    logging.getLogger("twilio.http_client").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def mask_phone(phone: str | None) -> str:
    """+15551234567 -> ***4567"""
    if not phone:
        return "<none>"
    return f"***{phone[-4:]}"
