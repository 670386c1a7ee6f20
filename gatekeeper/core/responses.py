from pydantic import BaseModel


class BadRequestResponse(BaseModel):
    detail: str = "Bad request"


class ServiceUnavailableResponse(BaseModel):
    detail: str = "Service unavailable"


class TooManyRequestsResponse(BaseModel):
    detail: str = "Too many requests"


class UnauthorizedResponse(BaseModel):
    detail: str = "Unauthorized"
