"""Global constants for the turfclub application."""

# Database-related constants
FIRESTORE_BATCH_LIMIT = 400

# Collection names
USERS_COLLECTION = "users"
EVENTS_COLLECTION = "events"
PARTICIPANTS_COLLECTION = "eventParticipants"
PAYMENTS_COLLECTION = "eventPayments"
GUESTS_COLLECTION = "guestPlayers"
USER_PROFILES_COLLECTION = "userProfiles"
EXPENSES_COLLECTION = "expenses"
INCOME_COLLECTION = "income"
TEAM_FUND_SUMMARY_COLLECTION = "teamFundSummary"
CONFIG_COLLECTION = "config"

TEAM_FUND_SUMMARY_DOC = "summary"
SUPERADMIN_SETTINGS_DOC = "superadminSettings"

# Roles
ROLE_PLAYER = "player"
ROLE_SECRETARY = "secretary"
ROLE_TREASURER = "treasurer"
ROLE_SUPERADMIN = "superadmin"
CLUB_ROLES = (ROLE_PLAYER, ROLE_SECRETARY, ROLE_TREASURER)
EVENT_MANAGER_ROLES = (ROLE_SECRETARY, ROLE_TREASURER)

# Event lifecycle
EVENT_OPEN = "open"
EVENT_CLOSED = "closed"
EVENT_LOCKED = "locked"
SETTLED_EVENT_STATUSES = (EVENT_CLOSED, EVENT_LOCKED)

# Participant records
PARTICIPANT_JOINED = "joined"
PLAYER_TYPE_REGULAR = "regular"
PLAYER_TYPE_GUEST = "guest"

# Payment statuses
PAYMENT_PENDING = "pending"
PAYMENT_PARTIAL = "partial"
PAYMENT_PAID = "paid"

# Ledger entries
EXPENSE_EVENT_PAYMENT = "event_payment"
EXPENSE_OTHER = "other_expense"
INCOME_SOURCES = (
    "sponsorship",
    "donation",
    "membership_fees",
    "fundraising",
    "other",
)

# Money
MIN_PLAYER_SHARE = 100
COST_ROUNDING_UNIT = 10
DEFAULT_CURRENCY_SYMBOL = "₹"

# Event views for members
EVENT_VIEW_UPCOMING = "upcoming"
EVENT_VIEW_JOINED = "joined"
EVENT_VIEW_PAST = "past"

# Player profiles
PLAYER_POSITIONS = ("GK", "DEF", "MID", "FORWARD")
MIN_JERSEY_NUMBER = 1
MAX_JERSEY_NUMBER = 99
