from decouple import config

# Server
API_HOST = config('COLLAB_API_HOST', default='127.0.0.1')
API_PORT = config('COLLAB_API_PORT', default=4000, cast=int)
RELOAD = config('COLLAB_RELOAD', default=False, cast=bool)

# Database Configuration
DB_PATH = config('COLLAB_DB_PATH', default='collab_playlist.db')
SEED_ON_START = config('COLLAB_SEED_ON_START', default=False, cast=bool)

# Event stream
HEARTBEAT_SECONDS = config('COLLAB_HEARTBEAT_SECONDS', default=15.0, cast=float)
SUBSCRIBER_QUEUE_SIZE = config('COLLAB_SUBSCRIBER_QUEUE_SIZE', default=256, cast=int)

# Client
API_URL = config('COLLAB_API_URL', default=f'http://localhost:{API_PORT}')
OFFLINE_STORE = config('COLLAB_OFFLINE_STORE', default='collab_playlist_store.json')
REQUEST_TIMEOUT = config('COLLAB_REQUEST_TIMEOUT', default=10.0, cast=float)
# A stream read outliving a few missed heartbeats means the connection is dead
STREAM_READ_TIMEOUT = config('COLLAB_STREAM_READ_TIMEOUT', default=HEARTBEAT_SECONDS * 3, cast=float)
BACKOFF_INITIAL = config('COLLAB_BACKOFF_INITIAL', default=1.0, cast=float)
BACKOFF_MAX = config('COLLAB_BACKOFF_MAX', default=30.0, cast=float)
PLAYBACK_TICK_SECONDS = config('COLLAB_PLAYBACK_TICK_SECONDS', default=0.25, cast=float)
DEFAULT_ADDED_BY = config('COLLAB_DEFAULT_ADDED_BY', default='Anonymous')

# Logging
LOG_LEVEL = config('COLLAB_LOG_LEVEL', default='INFO')
LOG_FILE = config('COLLAB_LOG_FILE', default=None)
