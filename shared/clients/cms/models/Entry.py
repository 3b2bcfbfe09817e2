"""Generic folder listing models, backend-independent."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class FileEntry(BaseModel):
    """
    Represents a single file in a folder listing. The path is canonical.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    modified: datetime | None = None


class FolderEntry(BaseModel):
    """
    Represents a single subfolder in a folder listing. The path is canonical.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    path: str
