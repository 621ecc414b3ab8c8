"""Firebase Realtime Database backend for RealtimeStore.

Uses firebase-admin with a service account. Paths are the same ones the
mobile app reads and writes (users/{uid}/...).
"""

import logging
from typing import Any, Callable

import firebase_admin
from firebase_admin import credentials, db
from firebase_admin.exceptions import FirebaseError

from .config import StoreConfig
from .errors import StoreError, TransientWriteFailure
from .store import Listener, Unsubscribe

logger = logging.getLogger(__name__)

APP_NAME = "wellmoria"


def connect(config: StoreConfig, name: str = APP_NAME) -> "FirebaseStore":
    """Get a store bound to an initialized firebase app.

    Reuses the app if one with this name already exists.

    Raises:
        StoreError: If no database URL is configured.
    """
    try:
        app = firebase_admin.get_app(name)
    except ValueError:
        database_url = config.resolved_database_url()
        if not database_url:
            raise StoreError(
                "Firebase database URL not configured. "
                "Set store.database_url in config.json or FIREBASE_DATABASE_URL."
            )
        cred_file = config.resolved_credentials_file()
        cred = credentials.Certificate(cred_file) if cred_file else credentials.ApplicationDefault()
        app = firebase_admin.initialize_app(cred, {"databaseURL": database_url}, name=name)
        logger.info("Initialized firebase app %s for %s", name, database_url)
    return FirebaseStore(app)


class FirebaseStore:
    """RealtimeStore over firebase_admin.db references."""

    def __init__(self, app=None):
        self.app = app

    def _ref(self, path: str):
        return db.reference(path, app=self.app)

    def get(self, path: str) -> Any:
        try:
            return self._ref(path).get()
        except FirebaseError as e:
            raise StoreError(f"Read of {path} failed: {e}") from e

    def set(self, path: str, value: Any) -> None:
        try:
            self._ref(path).set(value)
        except FirebaseError as e:
            raise TransientWriteFailure(path, e) from e

    def update(self, path: str, fields: dict) -> None:
        try:
            self._ref(path).update(fields)
        except FirebaseError as e:
            raise TransientWriteFailure(path, e) from e

    def transaction(self, path: str, fn: Callable[[Any], Any]) -> Any:
        try:
            return self._ref(path).transaction(fn)
        except FirebaseError as e:
            raise TransientWriteFailure(path, e) from e

    def on_value(self, path: str, callback: Listener) -> Unsubscribe:
        """Listen on 'path', handing the full node to 'callback' on every event.

        The first event carries the whole node; later events may be partial
        patches, so those re-read the node.
        """
        ref = self._ref(path)

        def _on_event(event) -> None:
            if event.event_type == "put" and event.path == "/":
                callback(event.data)
                return
            try:
                snapshot = ref.get()
            except FirebaseError as e:
                logger.warning("Could not refresh %s after change: %s", path, e)
                return
            callback(snapshot)

        try:
            registration = ref.listen(_on_event)
        except FirebaseError as e:
            raise StoreError(f"Listen on {path} failed: {e}") from e
        return registration.close
