import re

# ------------ Config defaults ------------
MAX_BUFFER_SIZE = 100          # events kept per identifier
MAX_EVENT_AGE_MS = 5000        # events older than this are swept
MAX_CLIENT_IDLE_MS = 60000     # cursors idle longer than this are purged
DRAIN_PAUSE_MS = 10            # pause between reads inside one poll tick
DEFAULT_PORT = 8080
URL_SUFFIX = "requests"
# -----------------------------------------

# ------------ Wire protocol ------------
GET_EVENTS_PREFIX = "GET_EVENTS_"
TRIGGER_PATTERN = re.compile(r"TRIGGER_([A-Za-z0-9]+)(?: (.*))?")
# the rest of a read body is the identifier, whatever it holds
GET_EVENTS_PATTERN = re.compile(r"GET_EVENTS_(.*)")
NOT_RECOGNIZED = "Not recognized any commands!"
# ---------------------------------------

# ------------ Outbound ------------
MAKER_TRIGGER_URL = "https://maker.ifttt.com/trigger/{event}/with/key/{key}"
IP_LOOKUP_URL = "http://checkip.amazonaws.com"
MAX_TRIGGER_VALUES = 3
# ----------------------------------
