"""Database and application configuration."""
import os

DATABASE_CONFIG = {
    'host': os.getenv('DB_HOST', 'localhost'),
    'port': os.getenv('DB_PORT', '5432'),
    'database': os.getenv('DB_NAME', 'perudo'),
    'user': os.getenv('DB_USER', os.getenv('USER', 'postgres')),
    'password': os.getenv('DB_PASSWORD', ''),
}

# Game rules
INITIAL_DICE_COUNT = 5
MIN_PLAYERS = 2
MAX_PLAYERS = 6
DICE_FACES = 6
WILD_FACE = 1

# Seconds the result of a round stays on screen before the next round starts
ROUND_END_DELAY = float(os.getenv('ROUND_END_DELAY', '4.0'))

# Seconds a player may sit on their turn before anyone can report the timeout
TURN_TIMEOUT = float(os.getenv('TURN_TIMEOUT', '30.0'))

# AI calibration
AI_DUDO_THRESHOLD = 0.35
AI_CALZA_DRAW = 0.7       # calza when random() > 0.7
AI_BLUFF_MARGIN = 1.5
AI_SELF_DUDO_DRAW = 0.1   # dudo over-reaching raises when random() > 0.1
PRACTICE_AI_COUNT = 3

GUEST_NAME = 'Guest Player'

LOGS_DIR = os.getenv('PERUDO_LOGS_DIR',
                     os.path.join(os.path.dirname(__file__), '..', '..', 'logs'))

FLASK_HOST = os.getenv('FLASK_HOST', '127.0.0.1')
FLASK_PORT = int(os.getenv('FLASK_PORT', '3000'))
FLASK_DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'


def get_database_url():
    """Get PostgreSQL connection URL."""
    c = DATABASE_CONFIG
    return f"postgresql://{c['user']}:{c['password']}@{c['host']}:{c['port']}/{c['database']}"
