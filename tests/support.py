"""Test doubles and helpers shared across the test-suite."""

import asyncio

from borrowerdesk.services.errors import AuthenticationError
from borrowerdesk.services.sessions import IdentityVerifier

TEST_SECRET = "test-secret-key-for-borrowerdesk"

STAFF_UID = "staff-1"
STAFF_RECORD = {"displayName": "Jane Cruz", "role": "admin", "status": "active"}


class StubIdentityVerifier(IdentityVerifier):
    """Maps known ID tokens to uids; anything else is rejected."""

    def __init__(self, tokens: dict):
        self.tokens = tokens

    async def verify_id_token(self, id_token: str) -> str:
        if id_token not in self.tokens:
            raise AuthenticationError("Invalid id token.")
        return self.tokens[id_token]


def seed(store, path: str, data: dict) -> None:
    asyncio.run(store.set(path, data, merge=False))


def read(store, path: str):
    return asyncio.run(store.get(path)).data
