import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///cupgame.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Web client origins allowed for HTTP and Socket.IO
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000'
    ).split(',') if o.strip()]
    # Undo window after each transition (seconds)
    UNDO_WINDOW_SEC = float(os.environ.get('UNDO_WINDOW_SEC', '5'))
    # Recent UI event ids a viewer remembers for dedup
    UI_EVENT_HISTORY_SIZE = int(os.environ.get('UI_EVENT_HISTORY_SIZE', '50'))
    # "6" or "10"; tournament games always use six cups
    DEFAULT_CUP_FORMATION = os.environ.get('DEFAULT_CUP_FORMATION', '10')
    # Advance the bracket when a tournament-linked game completes. 0 disables.
    BRACKET_AUTO_ADVANCE = os.environ.get('BRACKET_AUTO_ADVANCE', '1') not in ('0', 'false', 'False')
