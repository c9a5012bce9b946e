"""Git Data Client for GitHub repositories.

Exposes the low-level object store of one repository: repository metadata,
branch refs, trees, blobs and commits. Every call is independent; composing
them into a file edit is the job of ``lomad.mutation.ContentMutator``.
"""

import base64
import logging
from typing import List, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field

from .base_client import DEFAULT_API_URL, GitHubAPIClient
from .exceptions import (
    APIClientError,
    NotFoundError,
    RepositoryNotFoundError,
    RepositoryUnreachableError,
    TransportError,
)

logger = logging.getLogger(__name__)

BLOB_FILE_MODE = "100644"


def _extract_sha(data: dict, repository: "RepositoryHandle") -> str:
    try:
        return str(data["sha"])
    except KeyError:
        raise APIClientError(f"Invalid response format from {repository}: missing sha")


class RepositoryHandle(BaseModel):
    """Identifies one remote repository."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., description="Repository owner (user or organisation)")
    name: str = Field(..., description="Repository name")

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name


class RepositoryMetadata(BaseModel):
    """Model for the subset of repository metadata lomad uses."""

    name: str = Field(..., description="Repository name")
    full_name: str = Field("", description="owner/name")
    default_branch: str = Field(..., description="Default branch name")


class GitObject(BaseModel):
    """Model for the object a ref points at."""

    sha: str = Field(..., description="Object hash")
    type: str = Field("commit", description="Object type")


class GitRef(BaseModel):
    """Model for a named ref."""

    ref: str = Field(..., description="Fully qualified ref name")
    object: GitObject = Field(..., description="Target object")

    @property
    def sha(self) -> str:
        return self.object.sha


class GitTreeEntry(BaseModel):
    """Model for a single tree entry."""

    path: str = Field(..., description="Path relative to the tree root")
    mode: str = Field(..., description="File mode")
    type: str = Field(..., description="blob, tree or commit")
    sha: Optional[str] = Field(None, description="Object hash")


class GitTree(BaseModel):
    """Model for a tree and its entries."""

    sha: str = Field(..., description="Tree hash")
    tree: List[GitTreeEntry] = Field(default_factory=list, description="Entries")
    truncated: bool = Field(False, description="Whether the listing was truncated")

    def find_blob(self, path: str) -> Optional[str]:
        """Return the blob hash stored at ``path``, or None."""
        for entry in self.tree:
            if entry.path == path and entry.type == "blob":
                return entry.sha
        return None


class GitBlob(BaseModel):
    """Model for blob content as returned by the API."""

    sha: str = Field(..., description="Blob hash")
    content: str = Field(..., description="Encoded content")
    encoding: str = Field("base64", description="Content encoding")

    def decode_text(self) -> str:
        """Decode the blob into UTF-8 text."""
        if self.encoding == "base64":
            # GitHub wraps base64 output at 60 columns
            raw = base64.b64decode("".join(self.content.split()))
            return raw.decode("utf-8")
        return self.content


class GitDataAPIClient(GitHubAPIClient):
    """Client for Git Data operations on one repository."""

    def __init__(
        self,
        repository: RepositoryHandle,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(token, api_url=api_url, timeout=timeout, transport=transport)
        self.repository = repository

    @property
    def _repo_path(self) -> str:
        return (
            f"/repos/{quote(self.repository.owner, safe='')}"
            f"/{quote(self.repository.name, safe='')}"
        )

    async def fetch_repository_metadata(self) -> RepositoryMetadata:
        """Fetch repository metadata.

        Raises:
            RepositoryNotFoundError: If the repository does not exist or is
                not visible with the current token
            RepositoryUnreachableError: If the request got no response
        """
        try:
            data = await self._request_json(
                "GET",
                self._repo_path,
                f"Failed to fetch repository {self.repository}",
            )
        except NotFoundError as e:
            raise RepositoryNotFoundError(str(e), e.status_code) from e
        except TransportError as e:
            raise RepositoryUnreachableError(
                f"Repository {self.repository} is unreachable: {e}", e.user_guidance
            ) from e
        return RepositoryMetadata(**data)

    async def update_repository_metadata(self, default_branch: str) -> RepositoryMetadata:
        """Designate ``default_branch`` as the repository's default branch.

        Raises:
            RemoteRejectedError: If the branch does not exist
        """
        data = await self._request_json(
            "PATCH",
            self._repo_path,
            f"Failed to set default branch of {self.repository} to '{default_branch}'",
            json={"name": self.repository.name, "default_branch": default_branch},
        )
        return RepositoryMetadata(**data)

    async def fetch_ref(self, branch: str) -> GitRef:
        """Fetch the ref of ``branch``.

        Raises:
            NotFoundError: If the branch does not exist
        """
        data = await self._request_json(
            "GET",
            f"{self._repo_path}/git/ref/heads/{quote(branch)}",
            f"Failed to fetch branch '{branch}' of {self.repository}",
        )
        return GitRef(**data)

    async def create_ref(self, branch: str, sha: str) -> GitRef:
        """Create branch ``branch`` pointing at commit ``sha``.

        Raises:
            AlreadyExistsError: If the branch already exists
        """
        data = await self._request_json(
            "POST",
            f"{self._repo_path}/git/refs",
            f"Failed to create branch '{branch}' in {self.repository}",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )
        return GitRef(**data)

    async def update_ref(self, branch: str, sha: str) -> GitRef:
        """Move branch ``branch`` to commit ``sha`` (fast-forward only).

        Raises:
            RemoteRejectedError: If the update is not a fast-forward
        """
        data = await self._request_json(
            "PATCH",
            f"{self._repo_path}/git/refs/heads/{quote(branch)}",
            f"Failed to update branch '{branch}' of {self.repository}",
            json={"sha": sha, "force": False},
        )
        return GitRef(**data)

    async def fetch_tree(self, sha: str, recursive: bool = False) -> GitTree:
        """Fetch a tree by tree or commit hash."""
        params = {"recursive": "1"} if recursive else None
        data = await self._request_json(
            "GET",
            f"{self._repo_path}/git/trees/{sha}",
            f"Failed to fetch tree {sha} of {self.repository}",
            params=params,
        )
        tree = GitTree(**data)
        if tree.truncated:
            logger.warning(f"Tree {sha} of {self.repository} was truncated by the API")
        return tree

    async def fetch_blob(self, sha: str) -> GitBlob:
        """Fetch blob content."""
        data = await self._request_json(
            "GET",
            f"{self._repo_path}/git/blobs/{sha}",
            f"Failed to fetch blob {sha} of {self.repository}",
        )
        return GitBlob(**data)

    async def create_blob(self, content: str) -> str:
        """Store ``content`` as a new blob and return its hash."""
        data = await self._request_json(
            "POST",
            f"{self._repo_path}/git/blobs",
            f"Failed to create blob in {self.repository}",
            json={"content": content, "encoding": "utf-8"},
        )
        return _extract_sha(data, self.repository)

    async def create_tree(self, base_tree: str, entries: List[GitTreeEntry]) -> str:
        """Create a tree layered on ``base_tree`` and return its hash.

        Paths not listed in ``entries`` keep their ``base_tree`` mapping.
        """
        data = await self._request_json(
            "POST",
            f"{self._repo_path}/git/trees",
            f"Failed to create tree in {self.repository}",
            json={
                "base_tree": base_tree,
                "tree": [entry.model_dump() for entry in entries],
            },
        )
        return _extract_sha(data, self.repository)

    async def create_commit(self, message: str, tree: str, parents: List[str]) -> str:
        """Create a commit object and return its hash."""
        data = await self._request_json(
            "POST",
            f"{self._repo_path}/git/commits",
            f"Failed to create commit in {self.repository}",
            json={"message": message, "tree": tree, "parents": parents},
        )
        return _extract_sha(data, self.repository)
