# src/lint_pr_reviewer/app_auth.py
import logging
import time
from typing import Optional

import jwt
import requests

from .errors import ConfigError, SCMError

logger = logging.getLogger(__name__)


class GitHubAppAuth:
    """
    Issues installation tokens for a GitHub App.

    The app authenticates with a short-lived RS256 JWT and exchanges it for a
    token scoped to one installation, which is then used for cloning and for
    the API calls of a single run.
    """

    def __init__(
        self,
        app_id: int,
        private_key_path: str,
        api_base_url: str = "https://api.github.com",
        session: Optional[requests.Session] = None,
    ):
        self.app_id = app_id
        self._private_key_path = private_key_path
        self._private_key: Optional[str] = None
        self.api_base_url = api_base_url.rstrip("/")
        self._session = session or requests.Session()

    def _load_private_key(self) -> str:
        if self._private_key is None:
            try:
                with open(self._private_key_path, "r", encoding="utf-8") as f:
                    self._private_key = f.read()
            except OSError as e:
                raise ConfigError(f"unable to read private key {self._private_key_path}: {e}") from e
        return self._private_key

    def create_app_jwt(self) -> str:
        now = int(time.time())
        payload = {
            "iat": now - 60, # allow for clock drift
            "exp": now + 540,
            "iss": str(self.app_id),
        }
        return jwt.encode(payload, self._load_private_key(), algorithm="RS256")

    def get_installation_token(self, installation_id: int) -> str:
        url = f"{self.api_base_url}/app/installations/{installation_id}/access_tokens"
        logger.debug(f"Creating installation token for installation {installation_id}")
        try:
            response = self._session.post(
                url,
                headers={
                    "Authorization": f"Bearer {self.create_app_jwt()}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
                timeout=15,
            )
        except requests.exceptions.RequestException as e:
            raise SCMError(f"unable to create installation token: {e}") from e

        if response.status_code != 201:
            raise SCMError(
                f"unable to create installation token: expected 201 got {response.status_code}",
                status_code=response.status_code,
            )
        token = response.json().get("token")
        if not token:
            raise SCMError("unable to create installation token: token missing from response")
        return token
