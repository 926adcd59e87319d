# =============================================================================
# tests/unit/test_session.py
# Unit Tests for SessionManager
# =============================================================================

import pytest

from shop_core.auth import MockAuthProvider, SessionManager
from shop_core.auth.session import CURRENT_USER_KEY
from shop_core.data.models import USERS_TABLE, Role
from shop_core.errors import AuthorizationError, ValidationError

from conftest import ADMIN_ID, EMPLOYEE_ID


@pytest.fixture
def auth():
    auth = MockAuthProvider()
    auth.add_account("admin@boutique.bj", "secret", user_id=ADMIN_ID)
    auth.add_account("awa@boutique.bj", "secret", user_id=EMPLOYEE_ID)
    auth.add_account("x@boutique.bj", "secret", user_id="intruder")
    auth.add_account("ghost@boutique.bj", "secret", user_id="no-profile")
    return auth


@pytest.fixture
def session(auth, remote, cache, monitor):
    session = SessionManager(auth, remote, cache, monitor)
    session.attach()
    yield session
    session.detach()


class TestSignIn:

    def test_admin_sign_in_loads_role(self, session, cache):
        user = session.sign_in("admin@boutique.bj", "secret")

        assert user.role is Role.ADMIN
        assert user.username == "patronne"
        assert user.scope.role is Role.ADMIN
        assert cache.load_value(CURRENT_USER_KEY)["id"] == ADMIN_ID

    def test_employee_scope_carries_id(self, session):
        user = session.sign_in("awa@boutique.bj", "secret")

        assert user.scope.employee_id == EMPLOYEE_ID

    def test_bad_password_rejected(self, session):
        with pytest.raises(AuthorizationError):
            session.sign_in("admin@boutique.bj", "wrong")
        assert session.user is None

    @pytest.mark.parametrize("email", ["x@boutique.bj", "ghost@boutique.bj"])
    def test_invalid_role_signs_out(self, session, auth, email):
        """A role outside admin/employee, or no profile, ends the session"""
        with pytest.raises(AuthorizationError):
            session.sign_in(email, "secret")

        assert auth.current_user() is None
        assert session.user is None

    def test_profile_read_failure_signs_out(self, session, auth, remote):
        remote.fail_next(USERS_TABLE, "select")

        with pytest.raises(AuthorizationError):
            session.sign_in("admin@boutique.bj", "secret")
        assert auth.current_user() is None


class TestUsername:

    def test_choose_username(self, session, remote, auth):
        auth.add_account("new@boutique.bj", "secret", user_id="new-1")
        remote.insert(USERS_TABLE, [{"id": "new-1", "email": "new@boutique.bj", "role": "employee"}])

        user = session.sign_in("new@boutique.bj", "secret")
        assert user.needs_username

        user = session.choose_username("  kofi ")

        assert user.username == "kofi"
        assert remote.rows(USERS_TABLE)[-1]["username"] == "kofi"

    @pytest.mark.parametrize("name", ["ab", "x" * 21, "   "])
    def test_length_rules(self, session, name):
        session.sign_in("awa@boutique.bj", "secret")

        with pytest.raises(ValidationError):
            session.choose_username(name)

    def test_taken_username_rejected(self, session):
        session.sign_in("awa@boutique.bj", "secret")

        with pytest.raises(ValidationError):
            session.choose_username("patronne")


class TestRegister:

    def test_register_creates_employee_profile(self, session, remote, auth):
        user = session.register_employee("kofi@boutique.bj", "kofi", "admin1234")

        assert user.role is Role.EMPLOYEE
        assert auth.current_user().id == user.id
        profile = [r for r in remote.rows(USERS_TABLE) if r["id"] == user.id][0]
        assert profile["role"] == "employee"
        assert profile["username"] == "kofi"

    def test_taken_username_stops_before_sign_up(self, session, auth):
        with pytest.raises(ValidationError):
            session.register_employee("kofi@boutique.bj", "awa", "admin1234")

        assert auth.current_user() is None

    def test_profile_insert_failure_signs_out(self, session, remote, auth):
        remote.fail_next(USERS_TABLE, "insert")

        with pytest.raises(AuthorizationError):
            session.register_employee("kofi@boutique.bj", "kofi", "admin1234")

        assert auth.current_user() is None
        assert session.user is None


class TestRestoreAndEvents:

    def test_restore_online_rechecks_role(self, session, auth, cache, monitor, remote):
        auth.sign_in("admin@boutique.bj", "secret")
        fresh = SessionManager(auth, remote, cache, monitor)

        user = fresh.restore()

        assert user.id == ADMIN_ID

    def test_restore_offline_uses_cached_user(self, session, auth, cache, monitor, remote):
        session.sign_in("awa@boutique.bj", "secret")
        monitor.set_online(False)
        fresh = SessionManager(MockAuthProvider(), remote, cache, monitor)

        user = fresh.restore()

        assert user.id == EMPLOYEE_ID
        assert user.role is Role.EMPLOYEE

    def test_signed_out_event_clears_session(self, session, auth, cache):
        session.sign_in("admin@boutique.bj", "secret")

        auth.sign_out()

        assert session.user is None
        assert cache.load_value(CURRENT_USER_KEY) is None

    def test_token_refresh_reloads_role(self, session, auth, remote):
        session.sign_in("awa@boutique.bj", "secret")
        remote.update(USERS_TABLE, EMPLOYEE_ID, {"role": "admin"})

        auth.refresh_token()

        assert session.user.role is Role.ADMIN
