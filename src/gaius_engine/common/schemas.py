"""Shared Pydantic schemas for Gaius-Engine."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "gaius-engine"
    network: str = "testnet"
