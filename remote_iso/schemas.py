# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Pydantic schemas for the rendezvous directory."""
from pydantic import BaseModel, ConfigDict, Field


class PeerRecord(BaseModel):
    """A server address announced to the rendezvous directory."""

    model_config = ConfigDict(populate_by_name=True)

    ip: str = Field(description="Local address the server registered with")
    port: int = Field(alias="p", ge=0, le=65535, description="Port the server listens on")

    @property
    def url(self) -> str:
        """Base URL of the announced server."""
        return f"http://{self.ip}:{self.port}"
