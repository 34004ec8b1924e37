"""Data providers persisting the portfolio document locally or in Firebase Firestore."""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

try:
    import firebase_admin
    from firebase_admin import credentials, firestore
    FIREBASE_AVAILABLE = True
except ImportError:
    FIREBASE_AVAILABLE = False

from ..config.config import PersistenceConfig
from .models import PortfolioData


class StorageError(Exception):
    """The backend could not be read, as opposed to holding no document."""


class DataProvider(ABC):
    """Storage contract for the portfolio document.

    ``load_data`` and ``save_data`` never raise to the caller: an unavailable
    backend behaves as an empty store on load and logs the failure on save.
    Read-modify-write callers use ``read_data`` instead, which tells a
    missing document apart from a failed read.
    """

    @abstractmethod
    def initialize(self) -> None:
        """Prepare the backend (create files, connect clients)."""
        pass

    @abstractmethod
    def read_data(self, user_id: str) -> Optional[PortfolioData]:
        """
        Read a user's document.

        Returns:
            PortfolioData, or None when no document is stored

        Raises:
            StorageError: If the backend is unavailable or the document unreadable
        """
        pass

    def load_data(self, user_id: str) -> Optional[PortfolioData]:
        """
        Load a user's document.

        Returns:
            PortfolioData, or None when nothing is stored or the backend is unavailable
        """
        try:
            return self.read_data(user_id)
        except StorageError as e:
            logger.error(f"Failed to load data for {user_id}: {e}")
            return None

    @abstractmethod
    def save_data(self, user_id: str, data: PortfolioData) -> bool:
        """
        Save a user's document.

        Returns:
            True if the document was written, False otherwise
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        pass


class JsonFileDataProvider(DataProvider):
    """Stores one JSON document per user in a local file."""

    def __init__(self, path: str):
        self.path = Path(path).expanduser()

    def initialize(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Could not create data directory {self.path.parent}: {e}")

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            content = json.load(f)
        if not isinstance(content, dict):
            raise ValueError("top-level value is not an object")
        return content

    def read_data(self, user_id: str) -> Optional[PortfolioData]:
        try:
            document = self._read_all().get(user_id)
            if document is None:
                return None
            if not isinstance(document, dict):
                raise ValueError(f"document for {user_id} is not an object")
            return PortfolioData.from_dict(document)
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e

    def save_data(self, user_id: str, data: PortfolioData) -> bool:
        try:
            documents = self._read_all()
        except (OSError, ValueError) as e:
            # Other users' documents live in the same file
            logger.error(f"Not overwriting unreadable data file {self.path}: {e}")
            return False
        documents[user_id] = data.to_dict()

        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a temp file and swap it in so a crash never truncates the file
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".data-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(documents, f, indent=2)
            os.replace(tmp_path, self.path)
            tmp_path = None
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save data to {self.path}: {e}")
            return False
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError as e:
                    logger.warning(f"Could not remove temporary file {tmp_path}: {e}")

    def is_available(self) -> bool:
        return True


class FirestoreDataProvider(DataProvider):
    """Stores the document in Firebase Firestore, collection ``user_data``."""

    COLLECTION = "user_data"

    def __init__(self, project_id: str, credentials_path: Optional[str] = None, credentials_json: Optional[str] = None):
        """
        Args:
            project_id: Firebase project ID
            credentials_path: Path to Firebase service account JSON file (optional if credentials_json is provided)
            credentials_json: Firebase service account JSON as string (optional if credentials_path is provided)
        """
        if not credentials_path and not credentials_json:
            raise ValueError("Either credentials_path or credentials_json must be provided")
        self.project_id = project_id
        self.credentials_path = credentials_path
        self.credentials_json = credentials_json
        self.db = None

    def _certificate(self):
        if self.credentials_json:
            try:
                return credentials.Certificate(json.loads(self.credentials_json))
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in credentials_json: {e}")
        if not os.path.exists(self.credentials_path):
            raise FileNotFoundError(f"Firebase credentials file not found: {self.credentials_path}")
        return credentials.Certificate(self.credentials_path)

    def initialize(self) -> None:
        if self.db is not None:
            return
        if not FIREBASE_AVAILABLE:
            logger.error("firebase-admin is not installed. Install it with: pip install firebase-admin")
            return
        try:
            try:
                firebase_admin.initialize_app(self._certificate(), {"projectId": self.project_id})
            except ValueError as e:
                # Raised both for an already initialized app and for bad JSON
                if "already exists" not in str(e):
                    raise
            self.db = firestore.client()
            logger.info(f"Connected to Firestore project {self.project_id}")
        except Exception as e:
            logger.error(f"Failed to initialize Firestore: {e}")
            self.db = None

    def read_data(self, user_id: str) -> Optional[PortfolioData]:
        self.initialize()
        if self.db is None:
            raise StorageError("Firestore is unavailable")
        try:
            doc = self.db.collection(self.COLLECTION).document(user_id).get()
            if not doc.exists:
                return None
            stored = doc.to_dict() or {}
            document = stored.get("data")
            if document is None:
                return None
            if isinstance(document, str):
                document = json.loads(document)
            if not isinstance(document, dict):
                raise ValueError(f"document for {user_id} is not an object")
            return PortfolioData.from_dict(document)
        except Exception as e:
            raise StorageError(f"Failed to read from Firestore: {e}") from e

    def save_data(self, user_id: str, data: PortfolioData) -> bool:
        self.initialize()
        if self.db is None:
            logger.warning("Firestore unavailable, document not saved remotely")
            return False
        try:
            self.db.collection(self.COLLECTION).document(user_id).set({
                "data": data.to_dict(),
                "updated_at": firestore.SERVER_TIMESTAMP,
            })
            return True
        except Exception as e:
            logger.error(f"Failed to save data to Firestore: {e}")
            return False

    def is_available(self) -> bool:
        return FIREBASE_AVAILABLE and bool(self.project_id)


class HybridDataProvider(DataProvider):
    """Reads from the primary provider with a fallback; writes to both."""

    def __init__(self, primary: DataProvider, fallback: DataProvider):
        self.primary = primary
        self.fallback = fallback

    def initialize(self) -> None:
        if self.primary.is_available():
            self.primary.initialize()
        self.fallback.initialize()

    def read_data(self, user_id: str) -> Optional[PortfolioData]:
        if self.primary.is_available():
            try:
                data = self.primary.read_data(user_id)
                if data is not None:
                    return data
                logger.info("Primary provider returned no data, trying fallback")
            except StorageError as e:
                logger.warning(f"Primary provider failed, trying fallback: {e}")
        return self.fallback.read_data(user_id)

    def save_data(self, user_id: str, data: PortfolioData) -> bool:
        saved_primary = self.primary.save_data(user_id, data) if self.primary.is_available() else False
        saved_fallback = self.fallback.save_data(user_id, data) if self.fallback.is_available() else False
        if not saved_primary:
            logger.warning("Primary provider save failed; data kept in fallback only")
        return saved_primary or saved_fallback

    def is_available(self) -> bool:
        return self.primary.is_available() or self.fallback.is_available()


def create_data_provider(config: PersistenceConfig) -> DataProvider:
    """
    Create the data provider for the configured data mode.

    Args:
        config: Persistence configuration

    Returns:
        DataProvider instance

    Raises:
        ValueError: If db mode is selected without Firebase credentials
    """
    local = JsonFileDataProvider(config.data_path)

    if config.data_mode == "local":
        return local

    if config.data_mode == "db":
        if not config.is_remote_configured():
            raise ValueError("Firebase credentials are required for DATA_MODE=db")
        return FirestoreDataProvider(config.project_id, config.credentials_path, config.credentials_json)

    # hybrid: remote when configured, always backed by the local file
    if config.is_remote_configured():
        remote = FirestoreDataProvider(config.project_id, config.credentials_path, config.credentials_json)
        return HybridDataProvider(remote, local)
    logger.info("Hybrid data mode without Firebase credentials, using local storage only")
    return local
