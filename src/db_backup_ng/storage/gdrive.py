# pyright: standard

"""db-backup-ng: db_backup_ng/storage/gdrive.py
Store backups in a Google Drive folder.

Drive addresses files and folders by opaque ids and allows several entries
with the same name in one folder. A path handed to this backend is a chain
of folder names below the root folder, optionally starting with a folder id
returned by an earlier listing.
"""

from datetime import datetime
from typing import BinaryIO, Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseUpload

from db_backup_ng.__logger__ import logger

from .common import EntryKind, RemoteEntry, RemoteNotFound, RemoteStorage, latest_entry

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
TOKEN_URI = "https://oauth2.googleapis.com/token"
SCOPES = ["https://www.googleapis.com/auth/drive"]
LIST_FIELDS = "nextPageToken, files(id, name, mimeType, size, modifiedTime)"
UPLOAD_CHUNK_SIZE = 8 * 1024 * 1024


def _timestamp(value: Optional[str]) -> int:
    """Epoch seconds of an RFC 3339 time as reported by Drive."""
    if not value:
        return 0
    return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())


class GoogleDriveStorage(RemoteStorage):
    """Content-addressed storage below one Google Drive folder.

    The backend id of an entry is its Drive file id.
    """

    content_addressed = True

    def __init__(
        self,
        folder_id: str,
        *,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        page_size: int = 100,
    ) -> None:
        self.folder_id = folder_id or "root"
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.page_size = page_size
        self._service = None
        # ids returned by listings, accepted as the first path component
        self._known_folders: set[str] = set()

    def __repr__(self) -> str:
        return f"gdrive://{self.folder_id}"

    def get_id(self) -> str:
        """Return an id string to identify this backend over multiple runs."""
        return repr(self)

    def _get_service(self):
        """Build the authenticated Drive v3 service on first use."""
        if self._service is not None:
            return self._service

        creds = Credentials(
            token=None,
            refresh_token=self.refresh_token,
            client_id=self.client_id,
            client_secret=self.client_secret,
            token_uri=TOKEN_URI,
            scopes=SCOPES,
        )
        creds.refresh(Request())
        self._service = build("drive", "v3", credentials=creds, cache_discovery=False)
        return self._service

    def _prepare(self) -> None:
        """Authenticate and check that the root folder is a folder."""
        root = (
            self._get_service()
            .files()
            .get(fileId=self.folder_id, fields="id, mimeType")
            .execute()
        )
        if root.get("mimeType") != FOLDER_MIME_TYPE:
            raise NotADirectoryError(f"Drive file {self.folder_id} is not a folder")

    def _list_folder(self, folder_id: str) -> list[RemoteEntry]:
        service = self._get_service()
        query = f"'{folder_id}' in parents and trashed = false"
        entries = []
        page_token = None
        while True:
            results = (
                service.files()
                .list(
                    q=query,
                    spaces="drive",
                    fields=LIST_FIELDS,
                    pageSize=self.page_size,
                    pageToken=page_token,
                )
                .execute()
            )
            for f in results.get("files", []):
                is_dir = f.get("mimeType") == FOLDER_MIME_TYPE
                if is_dir:
                    self._known_folders.add(f["id"])
                entries.append(
                    RemoteEntry(
                        name=f.get("name", ""),
                        kind=EntryKind.DIRECTORY if is_dir else EntryKind.FILE,
                        backend_id=f["id"],
                        size_bytes=0 if is_dir else int(f.get("size", 0)),
                        timestamp=_timestamp(f.get("modifiedTime")),
                    )
                )
            page_token = results.get("nextPageToken")
            if not page_token:
                return entries

    def _resolve_folder(self, path: str) -> str:
        """Return the id of the folder at ``path``.

        Raises:
            RemoteNotFound: If a component does not name a folder
        """
        parts = [p for p in path.split("/") if p]
        folder_id = self.folder_id
        if parts and parts[0] in self._known_folders:
            folder_id = parts.pop(0)
        for name in parts:
            entry = latest_entry(self._list_folder(folder_id), name, EntryKind.DIRECTORY)
            if entry is None:
                raise RemoteNotFound(path)
            folder_id = entry.backend_id
        return folder_id

    def _split(self, path: str) -> tuple[str, str]:
        parent, _, name = path.strip("/").rpartition("/")
        if not name:
            raise ValueError(f"Path has no name component: {path!r}")
        return parent, name

    def exists(self, path: str) -> bool:
        if not path.strip("/"):
            return True
        parent, name = self._split(path)
        try:
            parent_id = self._resolve_folder(parent)
        except RemoteNotFound:
            return False
        if not parent and name in self._known_folders:
            return True
        return any(e.name == name for e in self._list_folder(parent_id))

    def _create_folder(self, parent_id: str, name: str) -> str:
        folder = (
            self._get_service()
            .files()
            .create(
                body={"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]},
                fields="id",
            )
            .execute()
        )
        self._known_folders.add(folder["id"])
        logger.debug("Created Drive folder %s in %s: %s", name, parent_id, folder["id"])
        return folder["id"]

    def _ensure_folder(self, path: str) -> str:
        """Return the id of the folder at ``path``, creating missing parents."""
        try:
            return self._resolve_folder(path)
        except RemoteNotFound:
            parent, name = self._split(path)
            return self._create_folder(self._ensure_folder(parent), name)

    def create_directory(self, path: str) -> None:
        parent, name = self._split(path)
        self._create_folder(self._ensure_folder(parent), name)

    def list_contents(
        self, scope_path: str = "/", recursive: bool = False
    ) -> list[RemoteEntry]:
        try:
            folder_id = self._resolve_folder(scope_path)
        except RemoteNotFound:
            return []
        entries = self._list_folder(folder_id)
        if recursive:
            for entry in list(entries):
                if entry.kind is EntryKind.DIRECTORY:
                    entries.extend(self.list_contents(entry.backend_id, True))
        return entries

    def write_stream(self, path: str, stream: BinaryIO) -> None:
        parent, name = self._split(path)
        parent_id = self._resolve_folder(parent)
        media = MediaIoBaseUpload(
            stream,
            mimetype="application/gzip",
            chunksize=UPLOAD_CHUNK_SIZE,
            resumable=True,
        )
        uploaded = (
            self._get_service()
            .files()
            .create(
                body={"name": name, "parents": [parent_id]},
                media_body=media,
                fields="id, size",
            )
            .execute()
        )
        logger.debug("Uploaded %s to Drive: %s", path, uploaded.get("id"))

    def size_of(self, path: str) -> int:
        parent, name = self._split(path)
        entry = latest_entry(
            self._list_folder(self._resolve_folder(parent)), name, EntryKind.FILE
        )
        if entry is None:
            raise RemoteNotFound(path)
        return entry.size_bytes
