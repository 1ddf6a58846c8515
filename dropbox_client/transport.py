"""
Authenticated HTTP request execution.

RequestExecutor turns (method, host, path, params) into a signed request and
hands back an HttpResponse holding just the status code, body bytes and
headers. Network-level failures come out as TransientNetworkError; HTTP
status codes are never raised here, interpreting them is up to the caller.
"""

import json
import logging
from typing import Any, BinaryIO, Dict, Mapping, NamedTuple, Optional

import requests
from requests_oauthlib import OAuth1

from . import __version__
from .auth import AccessToken, AppInfo
from .config import Config
from .exceptions import (
    InvalidAccessTokenError,
    ProtocolError,
    RetryLaterError,
    ServerError,
    TransientNetworkError,
    UnexpectedStatusError,
)

logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 64 * 1024

_TRANSIENT_EXCEPTIONS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.ChunkedEncodingError,
)


class HttpResponse(NamedTuple):
    status_code: int
    body: bytes
    headers: Mapping[str, str]


class BearerAuth(requests.auth.AuthBase):
    """Attach an OAuth 2 bearer token."""

    def __init__(self, token: str):
        self.token = token

    def __call__(self, request):
        request.headers["Authorization"] = f"Bearer {self.token}"
        return request


def make_auth(app_info: AppInfo, access_token: AccessToken) -> requests.auth.AuthBase:
    """Pick the request signer that matches the kind of token we have."""
    if access_token.is_bearer:
        return BearerAuth(access_token.key)
    return OAuth1(
        app_info.key,
        client_secret=app_info.secret,
        resource_owner_key=access_token.key,
        resource_owner_secret=access_token.secret,
        signature_method="PLAINTEXT",
    )


def encode_params(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Drop None values and spell booleans the way the API expects."""
    encoded = {}
    for name, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        encoded[name] = str(value)
    return encoded


def parse_json(body: bytes) -> Dict[str, Any]:
    """
    Decode a JSON object from a response body.

    Raises:
        ProtocolError: If the body isn't valid JSON or isn't a JSON object.
    """
    try:
        data = json.loads(body.decode("utf-8") if isinstance(body, bytes) else body)
    except ValueError as e:
        raise ProtocolError(f"Bad JSON in response: {e}: {body[:200]!r}") from e
    if not isinstance(data, dict):
        raise ProtocolError(f"Expecting a JSON object in response, got: {body[:200]!r}")
    return data


def unexpected_status(response: HttpResponse) -> UnexpectedStatusError:
    """Build (don't raise) the error for a status an operation didn't expect."""
    status = response.status_code
    message = f"HTTP status {status}"
    detail = _error_detail(response.body)
    if detail:
        message = f"{message}: {detail}"

    if status == 401:
        return InvalidAccessTokenError(message, status, response.body)
    if status in (429, 503):
        return RetryLaterError(message, status, response.body)
    if 500 <= status < 600:
        return ServerError(message, status, response.body)
    return UnexpectedStatusError(message, status, response.body)


def _error_detail(body: bytes) -> Optional[str]:
    if not body:
        return None
    try:
        payload = json.loads(body.decode("utf-8"))
    except ValueError:
        return body[:200].decode("utf-8", errors="replace")
    if isinstance(payload, dict) and "error" in payload:
        return str(payload["error"])
    return str(payload)[:200]


class RequestExecutor:
    """
    Issues signed requests against the Dropbox API hosts.

    Args:
        config: Client configuration (user agent, locale, timeout).
        access_token: Token used to sign every request.
        session: Optional pre-built requests.Session (handy in tests).
    """

    def __init__(
        self,
        config: Config,
        access_token: AccessToken,
        session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.session = session or requests.Session()
        self.session.auth = make_auth(config.app_info, access_token)
        self.session.headers["User-Agent"] = (
            f"{config.client_identifier} dropbox-client-python/{__version__}"
        )

    def build_url(self, host: str, path: str) -> str:
        return f"https://{host}/{path.lstrip('/')}"

    def _params(self, params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
        encoded = encode_params(params)
        if self.config.user_locale:
            encoded.setdefault("locale", self.config.user_locale)
        return encoded

    def _send(self, method: str, host: str, path: str, **kwargs) -> requests.Response:
        url = self.build_url(host, path)
        logger.debug("%s %s params=%s", method, url, kwargs.get("params"))
        try:
            response = self.session.request(
                method, url, timeout=self.config.timeout, **kwargs
            )
        except _TRANSIENT_EXCEPTIONS as e:
            raise TransientNetworkError(f"{method} {url} failed: {e}") from e
        logger.debug("%s %s -> %d", method, url, response.status_code)
        return response

    def _read(self, response: requests.Response) -> HttpResponse:
        try:
            body = response.content
        except _TRANSIENT_EXCEPTIONS as e:
            raise TransientNetworkError(f"Reading response body failed: {e}") from e
        return HttpResponse(response.status_code, body, response.headers)

    def get(self, host: str, path: str, params: Optional[Mapping[str, Any]] = None) -> HttpResponse:
        return self._read(self._send("GET", host, path, params=self._params(params)))

    def post(self, host: str, path: str, params: Optional[Mapping[str, Any]] = None) -> HttpResponse:
        # API parameters travel form-encoded in the body for POSTs
        return self._read(self._send("POST", host, path, data=self._params(params)))

    def put(
        self,
        host: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: bytes = b"",
        content_type: str = "application/octet-stream",
    ) -> HttpResponse:
        return self._read(
            self._send(
                "PUT",
                host,
                path,
                params=self._params(params),
                data=body,
                headers={"Content-Type": content_type},
            )
        )

    def get_to_stream(
        self,
        host: str,
        path: str,
        params: Optional[Mapping[str, Any]],
        out_stream: BinaryIO,
    ) -> HttpResponse:
        """
        GET a resource, copying a 200 body into `out_stream`.

        For any other status the body is read into memory and returned so
        the caller can report it; nothing is written to `out_stream`.
        """
        response = self._send("GET", host, path, params=self._params(params), stream=True)
        try:
            if response.status_code != 200:
                return self._read(response)
            try:
                for block in response.iter_content(STREAM_CHUNK_SIZE):
                    out_stream.write(block)
            except _TRANSIENT_EXCEPTIONS as e:
                raise TransientNetworkError(f"Download interrupted: {e}") from e
            return HttpResponse(response.status_code, b"", response.headers)
        finally:
            response.close()

    def close(self) -> None:
        self.session.close()
        logger.debug("HTTP session closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
