"""
Data Models Module

Pydantic models shared by the gateway components:
- TargetURL: the normalized destination of one proxied request
- ErrorResponse: body of the 500 response for processing errors
"""

from pydantic import BaseModel, ConfigDict, Field


class TargetURL(BaseModel):
    """
    Parsed absolute URL derived from the incoming request path.

    Always carries an http or https scheme and a non-empty host. Built fresh
    for every request and never cached.
    """

    model_config = ConfigDict(frozen=True)

    href: str = Field(..., description="Full URL as sent upstream")
    scheme: str = Field(..., description="http or https")
    host: str = Field(..., description="Host including an explicit port, if any")
    path: str = Field(default="/", description="Percent-encoded path")
    query: str = Field(default="", description="Query string without the leading '?'")

    @property
    def origin(self) -> str:
        return f"{self.scheme}://{self.host}"


class ErrorResponse(BaseModel):
    """Response body returned when a request cannot be processed."""
    error: str = Field(..., description="Error message")
