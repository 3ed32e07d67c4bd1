"""
Knowledge feature: storage for uploaded source files (Supabase Storage).
"""

import re
import unicodedata

from supabase import Client


def secure_filename(filename: str) -> str:
    """Strip accents and special characters, replace spaces with underscores."""
    filename = unicodedata.normalize('NFKD', filename).encode('ascii', 'ignore').decode('ascii')
    filename = re.sub(r'[^\w\.-]', '_', filename)
    return filename


class FileStorage:
    """Upload, download and remove files in one storage bucket."""

    def __init__(self, db: Client, bucket: str):
        self.db = db
        self.bucket = bucket

    def save(self, path: str, data: bytes, content_type: str | None = None) -> str:
        self.db.storage.from_(self.bucket).upload(
            file=data,
            path=path,
            file_options={"content-type": content_type or "application/octet-stream", "upsert": "true"},
        )
        return path

    def read(self, path: str) -> bytes:
        return self.db.storage.from_(self.bucket).download(path)

    def remove(self, path: str) -> None:
        self.db.storage.from_(self.bucket).remove([path])
