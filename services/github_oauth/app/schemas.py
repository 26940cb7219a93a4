"""Pydantic schemas exposed by the OAuth gateway."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuthorizationUrl(BaseModel):
    url: str


class RepositoryDetail(BaseModel):
    id: int
    name: Optional[str] = None
    private: bool
    stars: int = 0
    forks: int = 0
    language: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    size: int = 0


class RepositorySummary(BaseModel):
    """Repository statistics with private repository names pseudonymized."""

    model_config = ConfigDict(populate_by_name=True)

    owner: str
    total_repos: int = Field(..., alias="totalRepos")
    total_private_repos: int = Field(..., alias="totalPrivateRepos")
    total_public_repos: int = Field(..., alias="totalPublicRepos")
    total_private_stars: int = Field(..., alias="totalPrivateStars")
    language_stats: Dict[str, int] = Field(default_factory=dict, alias="languageStats")
    repository_ids: List[str] = Field(default_factory=list, alias="repositoryIds")
    repo_details: List[RepositoryDetail] = Field(default_factory=list, alias="repoDetails")


class VerificationStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    handle: str
    verified: bool
    verification_timestamp: str = Field(..., alias="verificationTimestamp")
    wallet_address: str = Field(..., alias="walletAddress")


class HandleLookup(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    handle: str
    wallet_address: Optional[str] = Field(None, alias="walletAddress")
    verified: bool
