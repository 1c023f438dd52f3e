import os
import threading
import time

from museum_booking.models import User
from museum_booking.session import SessionManager


def test_save_then_load_in_a_new_manager(tmp_path):
    state_dir = str(tmp_path / "state")
    user = User(id="u1", email="ops@example.com", role="admin")
    SessionManager(state_dir).save("tok-1", user)

    restored = SessionManager(state_dir)
    assert restored.load()
    assert restored.token == "tok-1"
    assert restored.user == user
    assert restored.is_admin
    assert restored.auth_headers() == {"Authorization": "Bearer tok-1"}


def test_load_without_file(session):
    assert not session.load()
    assert not session.is_authenticated
    assert session.auth_headers() == {}


def test_expired_session_is_ignored(tmp_path):
    manager = SessionManager(str(tmp_path), max_session_age_hours=1)
    manager.save("tok-1")
    old = time.time() - 2 * 3600
    os.utime(manager.state_file, (old, old))

    fresh = SessionManager(str(tmp_path), max_session_age_hours=1)
    assert not fresh.load()
    assert fresh.token is None


def test_corrupt_file_is_discarded(tmp_path):
    manager = SessionManager(str(tmp_path))
    manager.state_dir.mkdir(parents=True, exist_ok=True)
    manager.state_file.write_text("{not json", encoding="utf-8")

    assert not manager.load()
    assert not manager.state_file.exists()


def test_clear_forgets_token(session):
    session.save("tok-1")
    session.clear()

    assert session.token is None
    assert not session.state_file.exists()
    session.clear()


def test_concurrent_clears_do_not_raise(session):
    session.save("tok-1")
    barrier = threading.Barrier(8)
    errors = []

    def clear():
        barrier.wait()
        try:
            session.clear()
        except OSError as e:
            errors.append(e)

    workers = [threading.Thread(target=clear) for _ in range(8)]
    for w in workers:
        w.start()
    for w in workers:
        w.join()

    assert errors == []
    assert not session.state_file.exists()


def test_clear_after_file_removed_elsewhere(session):
    session.save("tok-1")
    session.state_file.unlink()

    session.clear()

    assert session.token is None
