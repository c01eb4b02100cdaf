"""Pydantic models for request/response validation."""
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field


class MemberInfo(BaseModel):
    """Team member as submitted at registration."""

    name: Optional[str] = Field(default="", description="Member name")
    email: Optional[str] = Field(default="", description="Member email")


class RegisterTeamRequest(BaseModel):
    """Team registration request; required fields are checked by the registry."""

    teamName: Optional[str] = Field(default=None, description="Team display name")
    department: Optional[str] = Field(default=None, description="Department")
    faculty: Optional[str] = Field(default=None, description="Faculty")
    githubUsername: Optional[str] = Field(default=None, description="Owner of the team repository")
    members: List[MemberInfo] = Field(default_factory=list, description="Exactly three members, leader first")

    class Config:
        json_schema_extra = {
            "example": {
                "teamName": "Merge Conflict Maniacs",
                "department": "Computer Science",
                "faculty": "Science",
                "githubUsername": "octocat",
                "members": [
                    {"name": "Ada", "email": "ada@example.com"},
                    {"name": "Linus", "email": "linus@example.com"},
                    {"name": "Grace", "email": "grace@example.com"}
                ]
            }
        }


class VoteRequest(BaseModel):
    """Vote submission request model."""

    teamId: Optional[Union[str, int]] = Field(default=None, description="Team identifier")

    class Config:
        json_schema_extra = {"example": {"teamId": "42"}}


class AdminRequest(BaseModel):
    """Admin request body; the secret may also travel in x-admin-secret."""

    secret: Optional[str] = Field(default=None, description="Admin secret fallback")


class AdminStartRequest(AdminRequest):
    """Competition start request."""

    # Checked by the competition service once the caller is authorized
    durationMinutes: Optional[Any] = Field(default=None, description="Voting window length in minutes")

    class Config:
        json_schema_extra = {"example": {"durationMinutes": 60}}


class Envelope(BaseModel):
    """Every response: {ok, data?, error?}."""

    ok: bool = Field(..., description="Whether the request succeeded")
    data: Optional[Any] = Field(default=None, description="Payload on success")
    error: Optional[str] = Field(default=None, description="Error message on failure")

    class Config:
        json_schema_extra = {
            "example": {"ok": False, "error": "You have already voted."}
        }
