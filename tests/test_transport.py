"""Tests for the HTTP transport."""
import httpx
import pytest

from sciupload.errors import ErrorKind, TransportError
from sciupload.services.transport import HTTPTransport, classify_response

ENDPOINT = "https://files.example.org/fileservice/api/file"


def _response(status: int, text: str = "", method: str = "PUT") -> httpx.Response:
    return httpx.Response(status, text=text, request=httpx.Request(method, f"{ENDPOINT}/v/a.txt"))


def _transport(handler, **kwargs) -> HTTPTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HTTPTransport(ENDPOINT, "secret-token", client=client, **kwargs)


class TestClassifyResponse:
    @pytest.mark.parametrize(
        "status, text, kind",
        [
            (401, "", ErrorKind.UNAUTHORIZED),
            (403, "", ErrorKind.UNAUTHORIZED),
            (404, "", ErrorKind.NOT_FOUND),
            (409, "", ErrorKind.ALREADY_EXISTS),
            (429, "", ErrorKind.SERVER_ERROR),
            (500, "oops", ErrorKind.SERVER_ERROR),
            (503, "", ErrorKind.SERVER_ERROR),
            (500, "java.io.IOException: File already exists", ErrorKind.ALREADY_EXISTS),
            (400, "", ErrorKind.CLIENT_ERROR),
        ],
    )
    def test_mapping(self, status, text, kind):
        error = classify_response(_response(status, text))
        assert isinstance(error, TransportError)
        assert error.kind == kind
        assert error.status_code == status

    @pytest.mark.parametrize("status", [200, 201, 204])
    def test_success(self, status):
        assert classify_response(_response(status)) is None

    def test_retryable_flags(self):
        assert classify_response(_response(502)).retryable is True
        assert classify_response(_response(401)).retryable is False


class TestHTTPTransport:
    @pytest.mark.asyncio
    async def test_put_streams_file_with_token(self, tmp_path):
        local = tmp_path / "data.csv"
        local.write_bytes(b"a,b\n1,2\n")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["token"] = request.headers.get("X-Auth-Token")
            seen["length"] = request.headers.get("Content-Length")
            seen["body"] = request.content
            return httpx.Response(200)

        async with _transport(handler) as transport:
            sent = await transport.put_file(local, "Storage/alice/persistent/data.csv")

        assert sent == 8
        assert seen["method"] == "PUT"
        assert seen["url"] == f"{ENDPOINT}/Storage/alice/persistent/data.csv"
        assert seen["token"] == "secret-token"
        assert seen["length"] == "8"
        assert seen["body"] == b"a,b\n1,2\n"

    @pytest.mark.asyncio
    async def test_put_overwrite_sets_quiet(self, tmp_path):
        local = tmp_path / "a.txt"
        local.write_text("x")
        params = {}

        def handler(request):
            params.update(request.url.params)
            return httpx.Response(200)

        async with _transport(handler, overwrite=True) as transport:
            await transport.put_file(local, "v/a.txt")

        assert params == {"quiet": "true"}

    @pytest.mark.asyncio
    async def test_put_without_overwrite_has_no_query(self, tmp_path):
        local = tmp_path / "a.txt"
        local.write_text("x")
        urls = []

        def handler(request):
            urls.append(request.url)
            return httpx.Response(200)

        async with _transport(handler) as transport:
            await transport.put_file(local, "v/a.txt")

        assert urls[0].query == b""

    @pytest.mark.asyncio
    async def test_remote_path_is_quoted(self, tmp_path):
        local = tmp_path / "my file.txt"
        local.write_text("x")
        paths = []

        def handler(request):
            paths.append(request.url.raw_path)
            return httpx.Response(200)

        async with _transport(handler) as transport:
            await transport.put_file(local, "v/my file.txt")

        assert paths[0].endswith(b"/v/my%20file.txt")

    @pytest.mark.asyncio
    async def test_bearer_auth_header(self, tmp_path):
        local = tmp_path / "a.txt"
        local.write_text("x")
        headers = {}

        def handler(request):
            headers.update(request.headers)
            return httpx.Response(200)

        async with _transport(handler, auth_header="Authorization") as transport:
            await transport.put_file(local, "v/a.txt")

        assert headers["authorization"] == "Bearer secret-token"

    @pytest.mark.asyncio
    async def test_put_missing_local_file(self, tmp_path):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        async with _transport(handler) as transport:
            with pytest.raises(TransportError) as exc_info:
                await transport.put_file(tmp_path / "nope.txt", "v/nope.txt")

        assert exc_info.value.kind == ErrorKind.LOCAL_IO
        assert calls == []

    @pytest.mark.asyncio
    async def test_put_directory_is_local_io(self, tmp_path):
        async with _transport(lambda request: httpx.Response(200)) as transport:
            with pytest.raises(TransportError) as exc_info:
                await transport.put_file(tmp_path, "v/dir")

        assert exc_info.value.kind == ErrorKind.LOCAL_IO

    @pytest.mark.asyncio
    async def test_put_server_error(self, tmp_path):
        local = tmp_path / "a.txt"
        local.write_text("x")

        async with _transport(lambda request: httpx.Response(502, text="bad gateway")) as transport:
            with pytest.raises(TransportError) as exc_info:
                await transport.put_file(local, "v/a.txt")

        assert exc_info.value.kind == ErrorKind.SERVER_ERROR
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_put_network_error(self, tmp_path):
        local = tmp_path / "a.txt"
        local.write_text("x")

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _transport(handler) as transport:
            with pytest.raises(TransportError) as exc_info:
                await transport.put_file(local, "v/a.txt")

        assert exc_info.value.kind == ErrorKind.NETWORK_ERROR
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_put_timeout(self, tmp_path):
        local = tmp_path / "a.txt"
        local.write_text("x")

        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with _transport(handler) as transport:
            with pytest.raises(TransportError) as exc_info:
                await transport.put_file(local, "v/a.txt")

        assert exc_info.value.kind == ErrorKind.NETWORK_ERROR

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, expected", [(200, True), (204, True), (404, False)])
    async def test_check_exists(self, status, expected):
        methods = []

        def handler(request):
            methods.append(request.method)
            return httpx.Response(status)

        async with _transport(handler) as transport:
            assert await transport.check_exists("v/a.txt") is expected

        assert methods == ["HEAD"]

    @pytest.mark.asyncio
    async def test_check_exists_unauthorized(self):
        async with _transport(lambda request: httpx.Response(401)) as transport:
            with pytest.raises(TransportError) as exc_info:
                await transport.check_exists("v/a.txt")

        assert exc_info.value.kind == ErrorKind.UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_requires_context(self, tmp_path):
        transport = HTTPTransport(ENDPOINT, "tok")
        with pytest.raises(RuntimeError, match="not initialized"):
            await transport.check_exists("v/a.txt")

    @pytest.mark.asyncio
    async def test_owned_client_closed_on_exit(self):
        transport = HTTPTransport(ENDPOINT, "tok")
        async with transport:
            assert transport._client is not None
        assert transport._client is None

    def test_url_for(self):
        transport = HTTPTransport(ENDPOINT + "/", "tok")
        assert transport.url_for("/vol/dir/a.txt") == f"{ENDPOINT}/vol/dir/a.txt"

    def test_default_token_header(self):
        assert HTTPTransport(ENDPOINT, "tok").headers == {"X-Auth-Token": "tok"}


def test_transport_satisfies_protocol():
    from sciupload.protocols import ITransport

    assert isinstance(HTTPTransport(ENDPOINT, "tok"), ITransport)


@pytest.mark.asyncio
async def test_caller_client_headers_untouched(tmp_path):
    local = tmp_path / "a.txt"
    local.write_text("x")
    tokens = []

    def handler(request):
        tokens.append(request.headers.get("X-Auth-Token"))
        return httpx.Response(200)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    async with HTTPTransport(ENDPOINT, "secret-token", client=client) as transport:
        await transport.check_exists("v/a.txt")
        await transport.put_file(local, "v/a.txt")

    assert tokens == ["secret-token", "secret-token"]
    assert "X-Auth-Token" not in client.headers
    assert not client.is_closed
    await client.aclose()
