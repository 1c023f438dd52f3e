"""Login session persistence for the ticketing API.

SessionManager owns the bearer token and the logged-in user. It is created
explicitly, loads the persisted token on ``load()``, and is torn down with
``clear()`` on logout or when the API answers 401.
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

from museum_booking.logging import get_logger
from museum_booking.models import User

logger = get_logger(__name__)


class SessionManager:
    """Manages bearer token persistence and validation.

    Saves the token and user profile to disk after a successful login and
    restores them on subsequent runs to avoid repeated logins.
    """

    def __init__(
        self, state_dir: str = "data/state", max_session_age_hours: int = 24
    ) -> None:
        """Initialize SessionManager.

        Args:
            state_dir: Directory to store the session file.
            max_session_age_hours: Maximum age of a stored token before it is ignored.
        """
        self.state_dir = Path(state_dir)
        self.state_file = self.state_dir / "session.json"
        self.max_session_age_hours = max_session_age_hours
        self.token: str | None = None
        self.user: User | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.role == "admin"

    def is_session_valid(self) -> bool:
        """Check if a saved session exists and is still fresh.

        Returns:
            True if the session file exists and is younger than max_session_age_hours.
        """
        if not self.state_file.exists():
            logger.debug("session_check", result="missing", reason="file_not_found")
            return False

        file_mtime = datetime.fromtimestamp(self.state_file.stat().st_mtime)
        age = datetime.now() - file_mtime
        max_age = timedelta(hours=self.max_session_age_hours)

        if age > max_age:
            logger.info(
                "session_check",
                result="expired",
                age_hours=age.total_seconds() / 3600,
                max_hours=self.max_session_age_hours,
            )
            return False

        logger.debug(
            "session_check",
            result="valid",
            age_hours=age.total_seconds() / 3600,
        )
        return True

    def load(self) -> bool:
        """Restore the persisted token, if any.

        An unreadable or expired session file is discarded.

        Returns:
            True if a token was restored.
        """
        if not self.is_session_valid():
            return False

        try:
            state = json.loads(self.state_file.read_text(encoding="utf-8"))
            token = state["token"]
        except (OSError, ValueError, KeyError) as e:
            logger.warning("session_load_failed", error=str(e))
            self.clear()
            return False

        self.token = token
        user = state.get("user")
        self.user = User.model_validate(user) if user else None
        logger.info("session_restored", path=str(self.state_file))
        return True

    def save(self, token: str, user: User | None = None) -> None:
        """Persist the token (and user profile) to disk.

        Args:
            token: Bearer token issued by /auth/login.
            user: Logged-in user profile.
        """
        self.token = token
        self.user = user
        self.state_dir.mkdir(parents=True, exist_ok=True)
        state = {
            "token": token,
            "user": user.model_dump(mode="json") if user else None,
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }
        self.state_file.write_text(json.dumps(state, indent=2), encoding="utf-8")
        logger.info("session_saved", path=str(self.state_file))

    def auth_headers(self) -> dict[str, str]:
        if self.token is None:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def clear(self) -> None:
        """Forget the token and delete the saved session file."""
        self.token = None
        self.user = None
        try:
            self.state_file.unlink()
        except FileNotFoundError:
            # another worker cleared it first after a concurrent 401
            logger.debug("session_clear_skipped", reason="file_not_found")
        else:
            logger.info("session_cleared", path=str(self.state_file))
