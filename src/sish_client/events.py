"""Tunnel session events and state.

A session publishes three kinds of events over its lifetime: ``ready`` once
the relay has announced a public address, ``log`` for each line of relay
output after that, and a final ``close`` when the ssh process exits.
"""

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class TunnelKind(str, Enum):
    """Kind of public endpoint announced by the relay."""

    TCP = "TCP"
    HTTPS = "HTTPS"


class SessionState(str, Enum):
    """Tunnel session lifecycle state."""

    CONNECTING = "connecting"
    READY = "ready"
    CLOSED = "closed"


class ReadyEvent(BaseModel):
    """The relay confirmed the tunnel and published its address."""

    model_config = ConfigDict(frozen=True)

    type: Literal["ready"] = "ready"
    kind: TunnelKind
    address: str


class LogEvent(BaseModel):
    """A line of relay output received after the tunnel became ready."""

    model_config = ConfigDict(frozen=True)

    type: Literal["log"] = "log"
    line: str


class CloseEvent(BaseModel):
    """The ssh process terminated."""

    model_config = ConfigDict(frozen=True)

    type: Literal["close"] = "close"
    exit_code: int = Field(default=0, description="0 if none was reported")
    signal: int | None = Field(
        default=None, description="Signal number if the process was killed"
    )


TunnelEvent = Annotated[
    ReadyEvent | LogEvent | CloseEvent, Field(discriminator="type")
]
