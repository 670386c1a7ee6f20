from gatekeeper.core.exceptions.base import CustomException


class RequestValidationError(CustomException):
    """
    Inbound request rejected before reaching authentication:
    unsupported content type, oversized or unparseable body
    """
