import sys
from typing import Optional, Tuple, Union

from loguru import logger

from hookrelay.schemas import IngestCommand, ReadCommand
from .constants import GET_EVENTS_PATTERN, NOT_RECOGNIZED, TRIGGER_PATTERN

Command = Union[IngestCommand, ReadCommand]
Reply = Tuple[int, str]

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def ms_to_seconds(ms: float) -> float:
    return ms / 1000.0


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stdout, level=level.upper(), format=LOG_FORMAT)


def parse_command(body: str) -> Optional[Command]:
    """Decode a request body into an ingest or read command, or None."""
    match = GET_EVENTS_PATTERN.fullmatch(body)
    if match:
        return ReadCommand(identifier=match.group(1))
    match = TRIGGER_PATTERN.fullmatch(body)
    if match:
        return IngestCommand(identifier=match.group(1), payload=match.group(2))
    return None


# Endpoint replies are (status, text) pairs
def make_ack(body: str) -> Reply:
    return 200, body

def make_reply(payload: Optional[str]) -> Reply:
    return 200, payload or ""

def make_not_recognized() -> Reply:
    return 404, NOT_RECOGNIZED
