# tests/unit/auth/test_issuer.py

from unittest.mock import MagicMock
from urllib.parse import parse_qs

import httpx
import pytest
import respx

from watsonx_kit.auth.issuer import APIKEY_GRANT_TYPE, TokenIssuer, token_url
from watsonx_kit.errors import TokenIssueError
from watsonx_kit.observability import names

IAM_URL = "https://iam.cloud.ibm.com/identity/token"


@pytest.fixture
def mock_iam():
    with respx.mock(assert_all_called=False) as respx_mock:
        yield respx_mock


class TestTokenUrl:
    def test_bare_host(self) -> None:
        assert token_url("iam.cloud.ibm.com") == IAM_URL

    def test_full_url_kept(self) -> None:
        assert token_url("http://localhost:8080/") == "http://localhost:8080/identity/token"


class TestTokenIssuer:
    @pytest.mark.asyncio
    async def test_issue_posts_apikey_form(self, mock_iam, token_body) -> None:
        route = mock_iam.post(IAM_URL).mock(
            return_value=httpx.Response(200, json=token_body(2_000_000_000))
        )

        async with httpx.AsyncClient() as client:
            credential = await TokenIssuer(client, "my-key").issue()

        assert credential.token == "test-token"
        assert credential.expires_at == 2_000_000_000

        sent = route.calls.last.request
        assert sent.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert sent.headers["Accept"] == "application/json"
        form = parse_qs(sent.content.decode())
        assert form == {"grant_type": [APIKEY_GRANT_TYPE], "apikey": ["my-key"]}

    @pytest.mark.asyncio
    async def test_custom_iam_host(self, mock_iam, token_body) -> None:
        route = mock_iam.post("https://iam.test.cloud.ibm.com/identity/token").mock(
            return_value=httpx.Response(200, json=token_body(2_000_000_000))
        )

        async with httpx.AsyncClient() as client:
            await TokenIssuer(client, "my-key", iam_host="iam.test.cloud.ibm.com").issue()

        assert route.called

    @pytest.mark.asyncio
    async def test_rejected_key(self, mock_iam) -> None:
        mock_iam.post(IAM_URL).mock(
            return_value=httpx.Response(
                400,
                json={
                    "errorCode": "BXNIM0415E",
                    "errorMessage": "Provided API key could not be found.",
                },
            )
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(TokenIssueError, match="status code 400") as exc_info:
                await TokenIssuer(client, "bad-key").issue()

        assert exc_info.value.status_code == 400
        assert "BXNIM0415E" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_malformed_body(self, mock_iam) -> None:
        mock_iam.post(IAM_URL).mock(
            return_value=httpx.Response(200, json={"token_type": "Bearer"})
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(TokenIssueError, match="malformed token response"):
                await TokenIssuer(client, "my-key").issue()

    @pytest.mark.asyncio
    async def test_not_retried(self, mock_iam) -> None:
        route = mock_iam.post(IAM_URL).mock(return_value=httpx.Response(503))

        async with httpx.AsyncClient() as client:
            with pytest.raises(TokenIssueError):
                await TokenIssuer(client, "my-key").issue()

        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_metrics(self, mock_iam, token_body) -> None:
        mock_iam.post(IAM_URL).mock(
            side_effect=[
                httpx.Response(200, json=token_body(2_000_000_000)),
                httpx.Response(500),
            ]
        )
        hook = MagicMock()

        async with httpx.AsyncClient() as client:
            issuer = TokenIssuer(client, "my-key", metrics_hook=hook)
            await issuer.issue()
            with pytest.raises(TokenIssueError):
                await issuer.issue()

        hook.increment.assert_any_call(names.TOKEN_REFRESH_TOTAL)
        hook.increment.assert_any_call(names.TOKEN_REFRESH_ERRORS_TOTAL)
        assert hook.record_latency.call_args.args[0] == names.TOKEN_REFRESH_DURATION
