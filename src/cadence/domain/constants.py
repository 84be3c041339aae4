"""Centralized constants for the Cadence scheduling core.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Forgetting curve ----------
DECAY = -0.5
FACTOR = 19 / 81  # 0.9 ** (1 / DECAY) - 1

# ---------- FSRS-4.5 default weights ----------
DEFAULT_WEIGHTS = (
    0.4872,  # w0: initial stability, Again
    1.4003,  # w1: initial stability, Hard
    3.7145,  # w2: initial stability, Good
    13.8206,  # w3: initial stability, Easy
    5.1618,  # w4: initial difficulty base
    1.2298,  # w5: initial difficulty slope
    0.8975,  # w6: difficulty step per rating
    0.031,  # w7: difficulty mean reversion
    1.6474,  # w8: stability growth scale
    0.1367,  # w9: stability saturation
    1.0461,  # w10: retrievability gain
    2.1072,  # w11: post-lapse stability scale
    0.0793,  # w12: post-lapse difficulty exponent
    0.3246,  # w13: post-lapse stability exponent
    1.587,  # w14: post-lapse retrievability gain
    0.2272,  # w15: hard penalty
    2.8755,  # w16: easy bonus
)

# ---------- Bounds ----------
MIN_STABILITY = 0.01
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0
MIN_INTERVAL_DAYS = 1 / 1440  # one minute
DEFAULT_MAXIMUM_INTERVAL_DAYS = 36500.0
LAPSE_STABILITY_CAP = 0.5

# ---------- Retention ----------
DEFAULT_DESIRED_RETENTION = 0.9
MIN_DESIRED_RETENTION = 0.5
MAX_DESIRED_RETENTION = 0.97

# ---------- Fresh cards ----------
DEFAULT_INITIAL_STABILITY = 1.0
DEFAULT_INITIAL_DIFFICULTY = 5.0

# ---------- Seed tiers: (interval days, difficulty) ----------
SEED_TIERS = {
    "very_easy": (14.0, 1.0),
    "easy": (7.0, 3.0),
    "medium": (3.0, 5.0),
    "hard": (1.0, 7.0),
}

# ---------- Calendar ----------
DEFAULT_TIMEZONE = "Asia/Ho_Chi_Minh"

# ---------- Persistence ----------
DEFAULT_WRITE_RETRIES = 2

# ---------- Record meta keys ----------
META_CARD_DIRECTION = "card_direction"
