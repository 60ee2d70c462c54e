from sqlalchemy import BigInteger, Enum, Integer, JSON
from sqlalchemy.dialects.postgresql import JSONB

# Enum types are native ENUMs on Postgres and VARCHAR elsewhere (SQLite in tests).

LISTING_STATUSES = ("open", "matched", "closed", "completed")
MATCH_STATUSES = ("pending", "accepted", "rejected", "completed")
# A (trip, shipment) pair may hold at most one match in these states
LIVE_MATCH_STATUSES = ("pending", "accepted")
TERMINAL_MATCH_STATUSES = ("rejected", "completed")
# Listings that can still take part in a new proposal
ACTIVE_LISTING_STATUSES = ("open", "matched")

role_enum = Enum("sender", "traveler", "admin", name="role_enum")
listing_status_enum = Enum(*LISTING_STATUSES, name="listing_status_enum")
match_status_enum = Enum(*MATCH_STATUSES, name="match_status_enum")
notification_kind_enum = Enum(
    "match_proposed",
    "match_accepted",
    "match_rejected",
    "match_completed",
    "new_message",
    "new_shipment",
    name="notification_kind_enum",
)

# BIGSERIAL on Postgres; SQLite only autoincrements INTEGER PRIMARY KEY
id_type = BigInteger().with_variant(Integer(), "sqlite")
json_type = JSON().with_variant(JSONB(), "postgresql")
