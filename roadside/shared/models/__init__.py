from roadside.shared.models.auth import AuthResponse, StatusResponse
from roadside.shared.models.common import ErrorResponse, HealthStatus

__all__ = ["AuthResponse", "ErrorResponse", "HealthStatus", "StatusResponse"]
