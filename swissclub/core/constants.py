"""Global constants for the swissclub application."""

# Firestore collection names
TOURNAMENTS_COLLECTION = "tournaments"
RESULTS_COLLECTION = "tournamentResults"
GAMES_COLLECTION = "games"
MEMBERS_COLLECTION = "members"
# Firestore accepts at most this many writes in one atomic batch
FIRESTORE_BATCH_LIMIT = 500

# Tournament statuses
STATUS_UPCOMING = "upcoming"
STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

# Pairing results
RESULT_PLAYER1 = "player1"
RESULT_PLAYER2 = "player2"
RESULT_DRAW = "draw"
RESULT_HALF_BYE_P1 = "half-bye-p1"
RESULT_HALF_BYE_P2 = "half-bye-p2"

# Swiss pairing is undefined below this many players
MIN_PLAYERS = 4

# Points
WIN_POINTS = 1.0
DRAW_POINTS = 0.5
LOSS_POINTS = 0.0
FORCED_BYE_POINTS = 1.0
HALF_POINT_BYE_POINTS = 0.5

# Caching and backend defaults
STANDINGS_CACHE_TTL = 30
FIRESTORE_TIMEOUT = 10.0

GAME_TYPE_TOURNAMENT = "tournament"
