"""
Pydantic models for provisioning API payloads.

Field names follow the snake_case JSON of the DigitalOcean databases API.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiModel(BaseModel):
    """Base model for API payloads; unknown response fields are ignored."""

    model_config = ConfigDict(extra="ignore")


class ConnectionInfo(ApiModel):
    """Connection coordinates of a cluster (public or private network)."""

    uri: str = ""
    database: str = ""
    host: str = ""
    port: int = 0
    user: str = ""
    password: str = ""
    ssl: bool = False


class RemoteCluster(ApiModel):
    """A database cluster as reported by the provisioning API."""

    id: str
    name: str = ""
    engine: str = ""
    version: str = ""
    num_nodes: int = 0
    size: str = ""
    region: str = ""
    status: str = ""
    created_at: Optional[datetime] = None
    connection: Optional[ConnectionInfo] = None
    private_connection: Optional[ConnectionInfo] = None


class ClusterCreateRequest(ApiModel):
    name: str
    engine: str
    version: str
    size: str
    region: str
    num_nodes: int


class ClusterResizeRequest(ApiModel):
    size: str
    num_nodes: int


class ClusterCA(ApiModel):
    # PEM encoded, already decoded from the API's base64 form.
    certificate: str = ""


class RemoteUser(ApiModel):
    """A database user. Some engines only return the password on creation."""

    name: str
    role: str = ""
    password: str = ""


class RemoteDatabase(ApiModel):
    name: str = Field(..., min_length=1)
