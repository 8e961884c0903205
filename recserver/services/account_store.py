"""
Account store: explicit user attributes from the identity/account service.
Read-only from the engine's point of view. JSON file, in-memory or Firestore
(users/{user_id} document).
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from recengine.models import AccountAttributes

from .firestore import firestore_client

logger = logging.getLogger(__name__)


def _to_attributes(user_id: str, data: Dict) -> Optional[AccountAttributes]:
    try:
        return AccountAttributes.model_validate({**data, "user_id": user_id})
    except ValueError as e:
        logger.warning("[account_store] MALFORMED_ACCOUNT user=%s err=%s", user_id, e)
        return None


class AccountStore(Protocol):
    """Protocol for account attribute lookup."""

    def get_attributes(self, user_id: str) -> Optional[AccountAttributes]:
        """Return explicit attributes for the user, or None if unknown."""
        ...


class InMemoryAccountStore:
    """Account store over a dict of user_id -> attributes."""

    def __init__(self, accounts: Optional[Dict[str, Union[Dict, AccountAttributes]]] = None):
        self._accounts: Dict[str, AccountAttributes] = {}
        for uid, data in (accounts or {}).items():
            self.put(uid, data)

    def put(self, user_id: str, data: Union[Dict, AccountAttributes]) -> None:
        attrs = data if isinstance(data, AccountAttributes) else _to_attributes(user_id, data)
        if attrs is not None:
            self._accounts[user_id] = attrs

    def get_attributes(self, user_id: str) -> Optional[AccountAttributes]:
        return self._accounts.get(user_id)


class JsonAccountStore(InMemoryAccountStore):
    """
    Account store loaded from a JSON file (e.g. data/accounts.json).
    Accepts {"users": [...]} , a list of users, or a user_id -> user mapping.
    """

    def __init__(self, path: Union[Path, str]):
        super().__init__()
        self._path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            logger.warning("[account_store] ACCOUNTS_FILE_MISSING path=%s", self._path)
            return
        with open(self._path) as f:
            data = json.load(f)
        users = data.get("users", data) if isinstance(data, dict) else data
        if isinstance(users, list):
            for u in users:
                uid = u.get("user_id") or u.get("id")
                if uid:
                    self.put(uid, u)
        elif isinstance(users, dict):
            for uid, u in users.items():
                self.put(uid, u)


class FirestoreAccountStore:
    """Account store backed by Firestore collection users; document ID = user_id."""

    def __init__(
        self,
        project_id: Optional[str] = None,
        credentials_path: Optional[Union[Path, str]] = None,
    ):
        self._db = firestore_client(project_id, credentials_path)

    def get_attributes(self, user_id: str) -> Optional[AccountAttributes]:
        snap = self._db.collection("users").document(user_id).get()
        if not snap.exists:
            return None
        return _to_attributes(user_id, snap.to_dict() or {})
