from typing import Dict, Optional


class GatewayError(Exception):
    code = "internal_error"
    http_status = 500
    public_message: Optional[str] = None

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(GatewayError):
    code = "bad_request"
    http_status = 400

    def __init__(self, field: str, message: str):
        super().__init__(message, details={"field": field})
        self.field = field


class UpstreamError(GatewayError):
    code = "upstream_error"
    http_status = 502

    def __init__(self, status: int, body: str):
        super().__init__(f"NSW Transport API error: HTTP {status}")
        self.status = status
        self.body = body


class TransportError(GatewayError):
    code = "internal_error"
    http_status = 500
    public_message = "Failed to fetch trip data"


class BreakerOpenError(TransportError):
    def __init__(self) -> None:
        super().__init__("NSW Transport API unavailable: circuit open")


class ConfigError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
