import time
import unittest

import jwt

from chapelboard.config import Settings
from chapelboard.errors import ServerError, Unauthenticated
from chapelboard.security import (
    SessionUser,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)


class PasswordHashTests(unittest.TestCase):
    def test_hash_and_verify(self):
        hashed = hash_password("hunter2")
        self.assertNotEqual(hashed, "hunter2")
        self.assertTrue(hashed.startswith("$2"))
        self.assertTrue(verify_password("hunter2", hashed))
        self.assertFalse(verify_password("hunter3", hashed))

    def test_corrupted_hash_is_a_server_error(self):
        with self.assertRaises(ServerError):
            verify_password("hunter2", "not-a-bcrypt-hash")


class AccessTokenTests(unittest.TestCase):
    def setUp(self):
        self.settings = Settings(jwt_secret="test-secret")

    def test_round_trip(self):
        token = create_access_token(SessionUser(id=7, username="alice"), self.settings)
        self.assertEqual(
            decode_access_token(token, self.settings), SessionUser(id=7, username="alice")
        )

        claims = jwt.decode(token, "test-secret", algorithms=["HS256"])
        self.assertEqual(claims["user"], {"id": 7, "username": "alice"})
        self.assertEqual(claims["exp"] - claims["iat"], self.settings.jwt_expires_seconds)

    def test_expired_token(self):
        past = int(time.time()) - 120
        token = jwt.encode(
            {"user": {"id": 1, "username": "a"}, "iat": past - 3600, "exp": past},
            "test-secret",
            algorithm="HS256",
        )
        with self.assertRaises(Unauthenticated) as ctx:
            decode_access_token(token, self.settings)
        self.assertEqual(ctx.exception.message, "Token has expired")

    def test_foreign_signature(self):
        token = create_access_token(
            SessionUser(id=1, username="a"), Settings(jwt_secret="other-secret")
        )
        with self.assertRaises(Unauthenticated) as ctx:
            decode_access_token(token, self.settings)
        self.assertEqual(ctx.exception.message, "Token is not valid")

    def test_token_without_user_claim(self):
        token = jwt.encode(
            {"exp": int(time.time()) + 60}, "test-secret", algorithm="HS256"
        )
        with self.assertRaises(Unauthenticated):
            decode_access_token(token, self.settings)


if __name__ == "__main__":
    unittest.main()
