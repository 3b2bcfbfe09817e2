"""Generic content container (page library) model, backend-independent."""

from pydantic import BaseModel, ConfigDict


class ContainerDescriptor(BaseModel):
    """
    Represents one candidate content library, as returned by a CMS client.
    Produced per discovery call and never persisted.
    """
    model_config = ConfigDict(frozen=True)

    engine: str
    id: str
    display_name: str | None = None
    type_tag: int
    root_path: str
