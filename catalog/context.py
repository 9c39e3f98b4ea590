from dataclasses import dataclass

from fastapi import Request


@dataclass(frozen=True)
class RequestContext:
    """
    Who triggered an operation and through which entry point.

    Passed explicitly to every service so audit log rows can record the
    caller without relying on ambient request globals.
    """
    ip_address: str = "Unknown"
    user_agent: str = "Unknown"
    request_uri: str = "Unknown"
    request_method: str = "Unknown"
    user_id: int = 0

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        """Build a context from an incoming HTTP request."""
        return cls(
            ip_address=request.client.host if request.client else "Unknown",
            user_agent=request.headers.get("user-agent", "Unknown"),
            request_uri=request.url.path,
            request_method=request.method,
        )

    @classmethod
    def for_cli(cls, command: str) -> "RequestContext":
        """Synthetic context for CLI commands and background workers."""
        return cls(
            ip_address="127.0.0.1",
            user_agent="cli",
            request_uri=command,
            request_method="CLI",
        )
