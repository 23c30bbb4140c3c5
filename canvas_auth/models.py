from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BootstrapView(BaseModel):
    """
    What the framed bootstrap page needs to start the OAuth prompt through
    the host's JavaScript SDK. Serialized with camelCase keys for the page.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    client_id: str = Field(alias="clientId")
    login_url: str = Field(alias="loginUrl")
    redirect_url: str = Field(alias="redirectUrl")
    # extra URL parameters (key1=val1&key2=val2), forwarded as-is
    state: Optional[str] = None


class PassThrough(BaseModel):
    model_config = ConfigDict(frozen=True)

    location: str
