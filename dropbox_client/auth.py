"""
Credentials: app info, access tokens, and loading them from files or the
environment.

Obtaining a token (the OAuth authorize/redirect dance) is not handled here.
"""

import json
import os
from pathlib import Path
from typing import Mapping, Optional, Tuple

from .exceptions import AuthenticationError, AuthInfoLoadError

DEFAULT_API_HOST = "api.dropbox.com"
DEFAULT_CONTENT_HOST = "api-content.dropbox.com"

# access_type -> URL root segment
ACCESS_TYPES = {
    "dropbox": "dropbox",
    "app_folder": "sandbox",
}

TOKEN_DIVIDER = "|"


class AppInfo:
    """Your app's key/secret and the kind of access it was registered for."""

    def __init__(
        self,
        key: str,
        secret: str,
        access_type: str = "dropbox",
        api_host: str = DEFAULT_API_HOST,
        content_host: str = DEFAULT_CONTENT_HOST,
    ):
        if access_type not in ACCESS_TYPES:
            raise ValueError(
                f"'access_type' must be one of {sorted(ACCESS_TYPES)}, got {access_type!r}"
            )
        self.key = key
        self.secret = secret
        self.access_type = access_type
        self.api_host = api_host
        self.content_host = content_host

    @property
    def root(self) -> str:
        """The path segment files live under for this access type."""
        return ACCESS_TYPES[self.access_type]

    def __repr__(self):
        return f"AppInfo(key={self.key!r}, access_type={self.access_type!r})"


class AccessToken:
    """
    An access token.

    With a `secret` it's an OAuth 1 token pair that gets signed together
    with the app key/secret. Without one it's an OAuth 2 bearer token.
    """

    def __init__(self, key: str, secret: Optional[str] = None):
        _check_token_part("key", key)
        if secret is not None:
            _check_token_part("secret", secret)
        self.key = key
        self.secret = secret

    @property
    def is_bearer(self) -> bool:
        return self.secret is None

    @classmethod
    def parse(cls, value: str) -> "AccessToken":
        """Parse "key|secret" (OAuth 1) or a plain bearer token string."""
        value = value.strip()
        if TOKEN_DIVIDER in value:
            key, _, secret = value.partition(TOKEN_DIVIDER)
            return cls(key, secret)
        return cls(value)

    def serialize(self) -> str:
        if self.secret is None:
            return self.key
        return f"{self.key}{TOKEN_DIVIDER}{self.secret}"

    def __eq__(self, other):
        return (
            isinstance(other, AccessToken)
            and self.key == other.key
            and self.secret == other.secret
        )

    def __repr__(self):
        # Never print secrets
        kind = "bearer" if self.is_bearer else "oauth1"
        return f"AccessToken({kind}, key={self.key[:4]}...)"


def _check_token_part(name: str, value) -> None:
    if not isinstance(value, str) or not value:
        raise ValueError(f"token {name} can't be empty")
    if " " in value:
        raise ValueError(f"token {name} can't contain a space")
    if TOKEN_DIVIDER in value:
        raise ValueError(f'token {name} can\'t contain a "{TOKEN_DIVIDER}"')


def load_auth_info(path) -> Tuple[AppInfo, AccessToken]:
    """
    Load app info and an access token from a JSON auth file.

    The file looks like:
        {
          "app": {"key": "...", "secret": "...", "access_type": "dropbox"},
          "access_token": "token-key|token-secret"
        }

    An optional "host" in "app" overrides the API host. The content host is
    derived from it ("api.x" -> "api-content.x").

    Raises:
        AuthInfoLoadError: If the file is missing, isn't JSON, or is missing fields.
    """
    path = Path(path)
    if not path.exists():
        raise AuthInfoLoadError(f'File doesn\'t exist: "{path}"')

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as e:
        raise AuthInfoLoadError(f'JSON parse error: "{path}": {e}') from e

    return auth_info_from_json(data)


def auth_info_from_json(data) -> Tuple[AppInfo, AccessToken]:
    if not isinstance(data, dict):
        raise AuthInfoLoadError("Expecting JSON object, found something else")

    if "app" not in data:
        raise AuthInfoLoadError('Missing field "app"')
    app_json = data["app"]
    if not isinstance(app_json, dict):
        raise AuthInfoLoadError('Bad "app" field: expecting a JSON object')

    for field in ("key", "secret"):
        if not isinstance(app_json.get(field), str) or not app_json[field]:
            raise AuthInfoLoadError(f'Bad "app" field: missing or empty "{field}"')

    host_kwargs = {}
    if "host" in app_json:
        host = app_json["host"]
        if not isinstance(host, str) or not host:
            raise AuthInfoLoadError('Bad "app" field: "host" must be a non-empty string')
        host_kwargs = {"api_host": host, "content_host": _content_host_for(host)}

    try:
        app_info = AppInfo(
            app_json["key"],
            app_json["secret"],
            app_json.get("access_type", "dropbox"),
            **host_kwargs,
        )
    except ValueError as e:
        raise AuthInfoLoadError(f'Bad "app" field: {e}') from e

    if "access_token" not in data:
        raise AuthInfoLoadError('Missing field "access_token"')
    token_str = data["access_token"]
    if not isinstance(token_str, str):
        raise AuthInfoLoadError('Expecting field "access_token" to be a string')

    try:
        access_token = AccessToken.parse(token_str)
    except ValueError as e:
        raise AuthInfoLoadError(f'Bad "access_token" field: {e}') from e

    return app_info, access_token


def _content_host_for(api_host: str) -> str:
    if api_host.startswith("api."):
        return "api-content." + api_host[len("api."):]
    return api_host


def auth_info_from_env(
    environ: Optional[Mapping[str, str]] = None,
    access_token: Optional[str] = None,
) -> Tuple[AppInfo, AccessToken]:
    """
    Build credentials from the environment.

    Lookup order:
      - explicit `access_token` argument (e.g. from CLI --token)
      - DROPBOX_AUTH_FILE: path to a JSON auth file
      - DROPBOX_ACCESS_TOKEN, with optional DROPBOX_APP_KEY,
        DROPBOX_APP_SECRET and DROPBOX_ACCESS_TYPE

    Raises:
        AuthenticationError: If no credentials can be found.
    """
    env = os.environ if environ is None else environ

    if not access_token and env.get("DROPBOX_AUTH_FILE"):
        return load_auth_info(env["DROPBOX_AUTH_FILE"])

    token_str = access_token or env.get("DROPBOX_ACCESS_TOKEN")
    if not token_str:
        raise AuthenticationError(
            "No Dropbox credentials provided.\n"
            "Set DROPBOX_AUTH_FILE, or DROPBOX_ACCESS_TOKEN (plus DROPBOX_APP_KEY and "
            "DROPBOX_APP_SECRET for OAuth 1 tokens), or pass --token."
        )

    try:
        token = AccessToken.parse(token_str)
    except ValueError as e:
        raise AuthenticationError(f"Malformed access token: {e}") from e

    app_key = env.get("DROPBOX_APP_KEY", "")
    app_secret = env.get("DROPBOX_APP_SECRET", "")
    if not token.is_bearer and not (app_key and app_secret):
        raise AuthenticationError(
            "OAuth 1 access tokens need DROPBOX_APP_KEY and DROPBOX_APP_SECRET."
        )

    try:
        app_info = AppInfo(app_key, app_secret, env.get("DROPBOX_ACCESS_TYPE", "dropbox"))
    except ValueError as e:
        raise AuthenticationError(str(e)) from e

    return app_info, token
