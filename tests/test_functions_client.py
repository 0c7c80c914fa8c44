import httpx
import pytest

from yachtdesk.errors import FunctionCallError, SessionExpiredError
from yachtdesk.services import FunctionsClient
from yachtdesk.services.functions_client import is_token_expired_error


class TestTokenExpiry:
    @pytest.mark.parametrize(
        "message",
        ["JWT expired", "token expired at 12:00", "Session expired", "claim timestamp check failed"],
    )
    def test_expiry_messages(self, message):
        assert is_token_expired_error(message)

    def test_unauthorized_needs_401(self):
        assert is_token_expired_error("Unauthorized", 401)
        assert not is_token_expired_error("Unauthorized", 403)

    def test_other_errors(self):
        assert not is_token_expired_error("Card declined", 402)
        assert not is_token_expired_error(None)


class TestInvoke:
    """Request shape and error mapping of the serverless client."""

    def test_posts_json_with_service_token(self, app, functions):
        functions.respond("create-user", body={"success": True, "userId": 7})
        result = FunctionsClient().invoke("create-user", {"email": "new@example.com"})
        assert result == {"success": True, "userId": 7}
        assert functions.calls == [
            {"name": "create-user", "json": {"email": "new@example.com"}, "authorization": "Bearer service-token"}
        ]

    def test_caller_token_overrides_service_token(self, app, functions):
        FunctionsClient().invoke("create-user", {}, token="user-jwt")
        assert functions.calls[0]["authorization"] == "Bearer user-jwt"

    def test_non_object_body_wrapped(self, app, functions):
        functions.respond("list", body=[1, 2])
        assert FunctionsClient().invoke("list") == {"data": [1, 2]}

    def test_success_false_raises(self, app, functions):
        functions.respond("create-user", body={"success": False, "message": "Email taken"})
        with pytest.raises(FunctionCallError) as excinfo:
            FunctionsClient().invoke("create-user", {})
        assert excinfo.value.message == "Email taken"
        assert excinfo.value.function_name == "create-user"

    def test_http_error_carries_remote_status(self, app, functions):
        functions.respond("create-user", status=422, body={"error": {"message": "Bad payload"}})
        with pytest.raises(FunctionCallError) as excinfo:
            FunctionsClient().invoke("create-user", {})
        assert excinfo.value.message == "Bad payload"
        assert excinfo.value.remote_status == 422
        assert excinfo.value.status_code == 502

    def test_unauthorized_is_session_expiry(self, app, functions):
        functions.respond("create-user", status=401, body={"msg": "Unauthorized"})
        with pytest.raises(SessionExpiredError):
            FunctionsClient().invoke("create-user", {})

    def test_network_error(self, app, functions):
        functions.responses["create-user"] = httpx.ConnectError("connection refused")
        with pytest.raises(FunctionCallError) as excinfo:
            FunctionsClient().invoke("create-user", {})
        assert "Could not reach" in excinfo.value.message

    def test_unconfigured(self, app):
        app.config["FUNCTIONS_BASE_URL"] = ""
        client = FunctionsClient()
        assert client.configured is False
        with pytest.raises(FunctionCallError):
            client.invoke("create-user", {})

    def test_explicit_transport(self, app):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={"ok": True})

        client = FunctionsClient(base_url="https://other.test/fn/", transport=httpx.MockTransport(handler))
        assert client.invoke("/ping") == {"ok": True}
        assert seen == ["https://other.test/fn/ping"]
