from .constants import *  # noqa: F401,F403
from .utility_functions import (
    Command,
    Reply,
    configure_logging,
    make_ack,
    make_not_recognized,
    make_reply,
    ms_to_seconds,
    parse_command,
)
