"""Internal constants shared across the library."""

# ------------------------------------------------------------------
# Wire framing (MAVLink 1.0)
# ------------------------------------------------------------------

STX = 0xFE
HEADER_LENGTH = 6
CHECKSUM_LENGTH = 2
FRAME_OVERHEAD = HEADER_LENGTH + CHECKSUM_LENGTH
X25_INIT = 0xFFFF

# ------------------------------------------------------------------
# Link identity
# ------------------------------------------------------------------

# We always claim to be a ground controller.
DEFAULT_SYSTEM_ID = 253
# MAV_COMP_ID_MISSIONPLANNER
DEFAULT_COMPONENT_ID = 190

# ------------------------------------------------------------------
# Protocol enum values used by the link
# ------------------------------------------------------------------

MAV_TYPE_GCS = 6
MAV_MODE_FLAG_CUSTOM_MODE_ENABLED = 1
MAV_FRAME_GLOBAL_RELATIVE_ALT = 3
MAV_CMD_NAV_WAYPOINT = 16
MAV_PARAM_TYPE_REAL32 = 9

# MISSION_ITEM.current value that marks a guided-mode target.
MISSION_ITEM_GUIDED = 2

# ------------------------------------------------------------------
# Exchange defaults
# ------------------------------------------------------------------

DEFAULT_RETRY_ATTEMPTS = 5
DEFAULT_RETRY_INTERVAL = 3.0
DEFAULT_LOCATION_THROTTLE = 1.0
DEFAULT_HEARTBEAT_TIMEOUT = 5.0
