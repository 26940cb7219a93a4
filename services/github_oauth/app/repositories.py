"""Privacy-preserving summary of a GitHub repository listing."""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable


def pseudonym(repo_id: Any) -> str:
    return f"private-{repo_id}"


def anonymize_repository(repo: dict[str, Any]) -> dict[str, Any]:
    """Keep the numeric facts of a repository and hide private names."""

    is_private = bool(repo.get("private"))
    return {
        "id": repo.get("id"),
        "name": pseudonym(repo.get("id")) if is_private else repo.get("name"),
        "private": is_private,
        "stars": int(repo.get("stargazers_count") or 0),
        "forks": int(repo.get("forks_count") or 0),
        "language": repo.get("language"),
        "created_at": repo.get("created_at"),
        "updated_at": repo.get("updated_at"),
        "size": int(repo.get("size") or 0),
    }


def language_stats(repos: Iterable[dict[str, Any]]) -> dict[str, int]:
    return dict(Counter(repo["language"] for repo in repos if repo.get("language")))


def summarize_repositories(owner: str, raw_repos: Iterable[dict[str, Any]]) -> dict[str, Any]:
    repos = [anonymize_repository(repo) for repo in raw_repos]
    private = [repo for repo in repos if repo["private"]]
    return {
        "owner": owner,
        "totalRepos": len(repos),
        "totalPrivateRepos": len(private),
        "totalPublicRepos": len(repos) - len(private),
        "totalPrivateStars": sum(repo["stars"] for repo in private),
        "languageStats": language_stats(repos),
        "repositoryIds": [str(repo["id"]) for repo in repos],
        "repoDetails": repos,
    }
