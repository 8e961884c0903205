"""
Shared Firebase app / Firestore client for the Firestore-backed stores.

Behavior store, account store and catalog all reuse one Firebase app
(same credentials_path and project_id).
"""

import json
from pathlib import Path
from typing import Any, Optional, Union


def project_id_from_credentials_file(credentials_path: Union[Path, str]) -> Optional[str]:
    """Read project_id from a Google service account JSON file if present."""
    path = Path(credentials_path)
    if not path.is_file():
        return None
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return None
    return data.get("project_id") or data.get("projectId")


def firestore_client(
    project_id: Optional[str] = None,
    credentials_path: Optional[Union[Path, str]] = None,
) -> Any:
    """Initialise the default Firebase app once and return a Firestore client."""
    try:
        import firebase_admin
        from firebase_admin import credentials, firestore
    except ImportError:
        raise ImportError(
            "firebase-admin is required for Firestore-backed stores. pip install firebase-admin"
        )
    if not firebase_admin._apps:
        project_id = project_id or (
            project_id_from_credentials_file(credentials_path) if credentials_path else None
        )
        opts = {"projectId": project_id} if project_id else None
        if credentials_path:
            cred = credentials.Certificate(str(Path(credentials_path).resolve()))
            firebase_admin.initialize_app(cred, opts)
        else:
            firebase_admin.initialize_app(options=opts)
    return firestore.client()


def query_descending() -> Any:
    from firebase_admin import firestore
    return firestore.Query.DESCENDING
