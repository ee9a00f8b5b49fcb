"""Tunnel session configuration model."""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_REMOTE_PORT = 80


class TunnelSessionConfig(BaseModel):
    """Configuration for a single reverse tunnel through a sish relay."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")

    local_host: str = Field(
        default="localhost", min_length=1, description="Local host to forward to"
    )
    local_port: int = Field(ge=1, le=65535, description="Local port to expose")
    remote_port: int = Field(
        default=DEFAULT_REMOTE_PORT,
        ge=1,
        le=65535,
        description="Port requested on the relay",
    )
    subdomain: str | None = Field(None, description="Named alias on the relay")
    sish_host: str | None = Field(None, description="Relay host (ssh destination)")
    ssh_command: str = Field(
        default="ssh", min_length=1, description="ssh executable to launch"
    )

    @field_validator("subdomain", "sish_host", mode="before")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Treat blank strings as absent."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_forwarding(self) -> "TunnelSessionConfig":
        """Check relay host presence and the subdomain/port combination."""
        if self.sish_host is None:
            raise ValueError("sish_host not provided")

        # sish only aliases subdomains on the HTTP port
        if self.subdomain is not None and self.remote_port != DEFAULT_REMOTE_PORT:
            raise ValueError("TCP alias not supported")

        return self

    @property
    def forward_spec(self) -> str:
        """Remote forwarding argument: ``[subdomain:]remote_port:local_host:local_port``."""
        spec = f"{self.remote_port}:{self.local_host}:{self.local_port}"
        if self.subdomain:
            spec = f"{self.subdomain}:{spec}"
        return spec

    def ssh_args(self) -> list[str]:
        """Build the ssh argument vector for this tunnel.

        Host key checking and pseudo-terminal allocation are disabled since
        the relay session is non-interactive.
        """
        return [
            self.ssh_command,
            "-o StrictHostKeyChecking=no",
            "-T",
            f"-R {self.forward_spec}",
            str(self.sish_host),
        ]
