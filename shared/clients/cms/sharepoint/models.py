"""Internal Pydantic models for SharePoint REST responses.

These models are only used inside CMSClientSharePoint to validate raw records
once the envelope has been unwrapped. They are never imported by the rest of
the application; external-facing types live in shared.clients.cms.models.
"""

from datetime import datetime

from pydantic import BaseModel


class _RootFolderResponse(BaseModel):
    ServerRelativeUrl: str


class _ListResponse(BaseModel):
    Id: str
    Title: str | None = None
    BaseTemplate: int
    RootFolder: _RootFolderResponse


class _FileResponse(BaseModel):
    Name: str
    ServerRelativeUrl: str
    TimeLastModified: datetime | None = None


class _FolderResponse(BaseModel):
    Name: str
    ServerRelativeUrl: str | None = None


class _ListItemResponse(BaseModel):
    FileRef: str | None = None
    FileLeafRef: str | None = None
    Title: str | None = None
    Modified: datetime | None = None


class _ContextInfoResponse(BaseModel):
    FormDigestValue: str


class _VerboseContextInfoResponse(BaseModel):
    GetContextWebInformation: _ContextInfoResponse


class _SearchCellResponse(BaseModel):
    Key: str
    Value: str | None = None


class _ContentFieldsResponse(BaseModel):
    CanvasContent1: str | None = None
