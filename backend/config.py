import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///quiz.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Server bind
    HOST = os.environ.get('HOST', '0.0.0.0')
    PORT = int(os.environ.get('PORT', '3000'))
    # Score store: supabase | sql | none | auto
    SCORE_STORE = os.environ.get('SCORE_STORE', 'auto')
    SUPABASE_URL = os.environ.get('SUPABASE_URL', '')
    SUPABASE_KEY = os.environ.get('SUPABASE_KEY', '')
    # Optional: fetch {url, key} from another server's /api/config instead
    STORE_CONFIG_URL = os.environ.get('STORE_CONFIG_URL', '')
    STORE_TIMEOUT_SEC = float(os.environ.get('STORE_TIMEOUT_SEC', '10'))
    # Question bank JSON; empty means the bundled bank
    QUESTION_BANK_PATH = os.environ.get('QUESTION_BANK_PATH', '')
    # Survival rules
    MAX_LIVES = int(os.environ.get('MAX_LIVES', '3'))
    QUESTION_DURATION_SEC = int(os.environ.get('QUESTION_DURATION_SEC', '15'))
    BASE_POINTS = int(os.environ.get('BASE_POINTS', '100'))
    TIME_BONUS_RATE = int(os.environ.get('TIME_BONUS_RATE', '10'))
    STREAK_BONUS_RATE = int(os.environ.get('STREAK_BONUS_RATE', '5'))
    MAX_NAME_LENGTH = int(os.environ.get('MAX_NAME_LENGTH', '24'))
    # Pause between an answer outcome and the next question (seconds)
    SETTLE_DELAY_SEC = float(os.environ.get('SETTLE_DELAY_SEC', '3'))
    LEADERBOARD_SIZE = int(os.environ.get('LEADERBOARD_SIZE', '10'))
    OPPONENT_HIT_CHANCE = float(os.environ.get('OPPONENT_HIT_CHANCE', '0.6'))
    # In-memory sessions: ended ones are dropped after ENDED_SESSION_TTL_SEC,
    # any session untouched for SESSION_IDLE_TTL_SEC is dropped as abandoned
    ENDED_SESSION_TTL_SEC = float(os.environ.get('ENDED_SESSION_TTL_SEC', '60'))
    SESSION_IDLE_TTL_SEC = float(os.environ.get('SESSION_IDLE_TTL_SEC', '900'))
