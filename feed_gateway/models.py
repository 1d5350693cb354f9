from pydantic import BaseModel
from typing import List


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    service: str
    time: str


class InstancesResponse(BaseModel):
    instances: List[str]
    active: str
    default: str


class AddressDescriptionResponse(BaseModel):
    platform: str
    route: str
    description: str


class SubscribeResponse(BaseModel):
    success: bool
    message: str
