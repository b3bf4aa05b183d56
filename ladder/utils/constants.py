"""
Constants used across the rating and match lifecycle system.
"""

# ELO calculation constants
K_FACTOR = 32  # K-factor applied to every competitive match
INITIAL_ELO = 1200

# Match lifecycle
CONFIRMATION_WINDOW_HOURS = 24  # Unconfirmed reports auto-promote after this
EDIT_GRACE_SECONDS = 60  # Reporter may edit/delete their own match within this window

# Challenges
MAX_WAGER = 50
MAX_CHALLENGE_MESSAGE_LENGTH = 100

# Player profile limits
MAX_PLAYER_NAME_LENGTH = 20
MAX_BIO_LENGTH = 150

# State snapshot windows
STATE_MATCHES_LIMIT = 100
STATE_HISTORY_LIMIT = 200
STATE_CHALLENGES_LIMIT = 50
STATE_TOURNAMENTS_LIMIT = 20
