import os
import tempfile
import unittest

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from lint_pr_reviewer.app_auth import GitHubAppAuth
from lint_pr_reviewer.errors import ConfigError, SCMError


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def post(self, url, headers=None, timeout=None):
        self.calls.append((url, headers))
        return self.response


class TestGitHubAppAuth(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        cls.public_key = key.public_key()
        cls.tmp = tempfile.TemporaryDirectory()
        cls.key_path = os.path.join(cls.tmp.name, "app.pem")
        with open(cls.key_path, "wb") as f:
            f.write(key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.TraditionalOpenSSL,
                encryption_algorithm=serialization.NoEncryption(),
            ))

    @classmethod
    def tearDownClass(cls):
        cls.tmp.cleanup()

    def test_app_jwt(self):
        token = GitHubAppAuth(1234, self.key_path).create_app_jwt()

        claims = jwt.decode(token, self.public_key, algorithms=["RS256"])

        self.assertEqual(claims["iss"], "1234")
        self.assertEqual(claims["exp"] - claims["iat"], 600)

    def test_installation_token(self):
        session = FakeSession(FakeResponse(201, {"token": "ghs_abc"}))
        auth = GitHubAppAuth(1234, self.key_path, api_base_url="https://github.example.com/api/v3", session=session)

        self.assertEqual(auth.get_installation_token(55), "ghs_abc")

        url, headers = session.calls[0]
        self.assertEqual(url, "https://github.example.com/api/v3/app/installations/55/access_tokens")
        self.assertTrue(headers["Authorization"].startswith("Bearer "))

    def test_installation_token_failure(self):
        auth = GitHubAppAuth(1234, self.key_path, session=FakeSession(FakeResponse(404)))

        with self.assertRaises(SCMError) as ctx:
            auth.get_installation_token(55)
        self.assertEqual(ctx.exception.status_code, 404)

    def test_missing_key(self):
        with self.assertRaises(ConfigError):
            GitHubAppAuth(1234, os.path.join(self.tmp.name, "missing.pem")).create_app_jwt()


if __name__ == '__main__':
    unittest.main()
