"""Tests for session storage, server-side validation and startup routing."""

import stat

import httpx
import pytest
import yaml

from conftest import MemorySessionStore, RecordingServer
from nexus.device.permissions import StaticPermissionGate
from nexus.models import ApiResult, Session
from nexus.session import (
    FileSessionStore,
    SessionValidator,
    StartupDecision,
    StartupRouter,
    clear_session,
    load_session,
    save_session,
)
from nexus.session.store import DEPLOYMENT_CODE_KEY, LOCK_KEY, TOKEN_KEY


def stored(token="T1", code="D1", lock="true") -> MemorySessionStore:
    return MemorySessionStore({TOKEN_KEY: token, DEPLOYMENT_CODE_KEY: code, LOCK_KEY: lock})


class StubApi:
    """ApiClient stand-in answering check_status with a fixed result."""

    def __init__(self, result=None, exc=None):
        self.result = result
        self.exc = exc
        self.calls = []

    async def check_status(self, token, deployment_code):
        self.calls.append((token, deployment_code))
        if self.exc is not None:
            raise self.exc
        return self.result


class TestSessionModel:
    @pytest.mark.parametrize("token,code", [("", "D1"), ("T1", "")])
    def test_requires_token_and_code(self, token, code):
        with pytest.raises(ValueError):
            Session(token=token, deployment_code=code)


class TestStoreHelpers:
    def test_load_requires_both_values(self):
        assert load_session(MemorySessionStore()) is None
        assert load_session(MemorySessionStore({TOKEN_KEY: "T1"})) is None
        assert load_session(MemorySessionStore({DEPLOYMENT_CODE_KEY: "D1"})) is None

    def test_load_reads_lock_flag(self):
        assert load_session(stored(lock="true")).lock_flag is True
        assert load_session(stored(lock="false")).lock_flag is False

    def test_missing_lock_flag_is_unlocked(self):
        store = MemorySessionStore({TOKEN_KEY: "T1", DEPLOYMENT_CODE_KEY: "D1"})

        assert load_session(store) == Session("T1", "D1", lock_flag=False)

    def test_save_then_load(self):
        store = MemorySessionStore()

        save_session(store, Session("T9", "D9", lock_flag=True))

        assert store.data == {TOKEN_KEY: "T9", DEPLOYMENT_CODE_KEY: "D9", LOCK_KEY: "true"}
        assert load_session(store) == Session("T9", "D9", lock_flag=True)

    def test_clear_removes_credentials_and_resets_lock(self):
        store = stored()

        clear_session(store)

        assert store.data == {LOCK_KEY: "false"}
        assert load_session(store) is None


class TestFileSessionStore:
    def test_missing_file_reads_empty(self, tmp_path):
        store = FileSessionStore(tmp_path / "missing.yaml")

        assert store.get(TOKEN_KEY) is None

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "session.yaml"
        save_session(FileSessionStore(path), Session("T1", "D1", lock_flag=True))

        assert load_session(FileSessionStore(path)) == Session("T1", "D1", lock_flag=True)
        assert yaml.safe_load(path.read_text())[DEPLOYMENT_CODE_KEY] == "D1"

    def test_file_is_private(self, tmp_path):
        path = tmp_path / "session.yaml"
        FileSessionStore(path).set(TOKEN_KEY, "secret")

        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_no_temp_files_left_behind(self, tmp_path):
        store = FileSessionStore(tmp_path / "session.yaml")
        store.set(TOKEN_KEY, "T1")
        store.set(DEPLOYMENT_CODE_KEY, "D1")
        store.remove(TOKEN_KEY)

        assert [p.name for p in tmp_path.iterdir()] == ["session.yaml"]

    @pytest.mark.parametrize("content", ["::: not yaml [", "- a\n- list\n", ""])
    def test_malformed_file_reads_empty(self, tmp_path, content):
        path = tmp_path / "session.yaml"
        path.write_text(content)

        assert load_session(FileSessionStore(path)) is None

    def test_clear(self, tmp_path):
        store = FileSessionStore(tmp_path / "session.yaml")
        save_session(store, Session("T1", "D1", lock_flag=True))

        clear_session(store)

        assert load_session(store) is None
        assert store.get(LOCK_KEY) == "false"


class TestSessionValidator:
    async def test_logged_in(self, make_api):
        server = RecordingServer({"checkStatus": httpx.Response(200, json={"isLoggedIn": True})})

        assert await SessionValidator(make_api(server)).validate("T1", "D1") is True

    async def test_logged_out(self, make_api):
        server = RecordingServer({"checkStatus": httpx.Response(200, json={"isLoggedIn": False})})

        assert await SessionValidator(make_api(server)).validate("T1", "D1") is False

    async def test_missing_flag_means_logged_out(self, make_api):
        server = RecordingServer({"checkStatus": httpx.Response(200, json={"success": True})})

        assert await SessionValidator(make_api(server)).validate("T1", "D1") is False

    async def test_truthy_non_boolean_is_not_logged_in(self, make_api):
        server = RecordingServer({"checkStatus": httpx.Response(200, json={"isLoggedIn": "yes"})})

        assert await SessionValidator(make_api(server)).validate("T1", "D1") is False

    async def test_unauthorized(self, make_api):
        server = RecordingServer({"checkStatus": httpx.Response(401, text="")})

        assert await SessionValidator(make_api(server)).validate("T1", "D1") is False

    async def test_connection_refused(self, make_api):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        assert await SessionValidator(make_api(handler)).validate("T1", "D1") is False

    async def test_unexpected_exception(self):
        api = StubApi(exc=RuntimeError("boom"))

        assert await SessionValidator(api).validate("T1", "D1") is False

    async def test_failed_result_with_logged_in_data(self):
        api = StubApi(ApiResult(success=False, message="x", data={"isLoggedIn": True}))

        assert await SessionValidator(api).validate("T1", "D1") is False


class TestStartupRouter:
    """Startup routing decision table."""

    @pytest.mark.parametrize(
        "store_factory,logged_in,granted,expected",
        [
            (stored, True, True, StartupDecision.RESUME),
            (stored, True, False, StartupDecision.LOGIN),
            (stored, False, True, StartupDecision.LOGIN),
            (stored, False, False, StartupDecision.PERMISSIONS),
            (MemorySessionStore, None, True, StartupDecision.LOGIN),
            (MemorySessionStore, None, False, StartupDecision.PERMISSIONS),
        ],
    )
    async def test_routes(self, store_factory, logged_in, granted, expected):
        api = StubApi(ApiResult(success=True, message="ok", data={"isLoggedIn": logged_in}))
        router = StartupRouter(store_factory(), SessionValidator(api), StaticPermissionGate(granted))

        assert await router.resolve() is expected

    async def test_no_session_skips_server(self):
        api = StubApi()
        router = StartupRouter(MemorySessionStore(), SessionValidator(api), StaticPermissionGate(True))

        await router.resolve()

        assert api.calls == []

    async def test_invalid_session_is_cleared(self):
        store = stored()
        api = StubApi(ApiResult(success=True, message="ok", data={"isLoggedIn": False}))
        router = StartupRouter(store, SessionValidator(api), StaticPermissionGate(True))

        await router.resolve()

        assert api.calls == [("T1", "D1")]
        assert load_session(store) is None
        assert store.data[LOCK_KEY] == "false"

    async def test_valid_session_is_kept(self):
        store = stored()
        api = StubApi(ApiResult(success=True, message="ok", data={"isLoggedIn": True}))
        router = StartupRouter(store, SessionValidator(api), StaticPermissionGate(False))

        await router.resolve()

        assert load_session(store) == Session("T1", "D1", lock_flag=True)

    async def test_unexpected_error_routes_to_permissions(self):
        class BrokenGate:
            def has_all_critical_permissions(self):
                raise RuntimeError("permission service unavailable")

        router = StartupRouter(MemorySessionStore(), SessionValidator(StubApi()), BrokenGate())

        assert await router.resolve() is StartupDecision.PERMISSIONS
