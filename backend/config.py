import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///quizzy.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Browser origins allowed for HTTP and Socket.IO
    CORS_ORIGINS = [o for o in os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:5173,http://127.0.0.1:5173',
    ).split(',') if o]
    # Length of the public code players type to join
    GAME_CODE_LENGTH = int(os.environ.get('GAME_CODE_LENGTH', '6'))
    # Question time budget given to new quizzes (seconds)
    DEFAULT_TIMER_SECONDS = int(os.environ.get('DEFAULT_TIMER_SECONDS', '20'))
    MAX_USERNAME_LENGTH = int(os.environ.get('MAX_USERNAME_LENGTH', '24'))
    # Optional: heartbeat interval for deadline timer logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
