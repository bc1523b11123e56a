# fleetdesk/extensions.py
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# ======================
# Login Manager
# ======================
# Principals are loaded from the Flask session in fleetdesk.auth
login_manager = LoginManager()
login_manager.login_view = "auth.login"
login_manager.login_message = "Please log in to continue."
login_manager.login_message_category = "info"

# ======================
# Rate Limiter
# ======================
# Storage comes from RATELIMIT_STORAGE_URI (Redis in production, memory locally)
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],              # No global limits by default
)
