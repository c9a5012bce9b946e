"""Remote content mutation for GitHub repositories.

The Git Data API has no "edit a file" primitive: an edit is a sequence of
independent object creations (blob, tree, commit) followed by a ref move.
``ContentMutator.update_file`` runs that sequence as one explicit
transaction. Nothing becomes visible until the final ref update, so a failure
at any earlier stage leaves the branch untouched; objects created before the
failure stay unreferenced and are left to GitHub's garbage collection.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, cast

from ..api_clients.exceptions import AlreadyExistsError
from ..api_clients.git_data_client import (
    BLOB_FILE_MODE,
    GitDataAPIClient,
    GitTreeEntry,
    RepositoryHandle,
)

logger = logging.getLogger(__name__)

# (current content, parameter) -> new content
FileTransform = Callable[[str, Any], str]


class FileNotInTreeError(FileNotFoundError):
    """Raised when the file to edit is absent from the branch head tree."""

    def __init__(self, filename: str, repository: RepositoryHandle):
        super().__init__(f"{filename} not found in tree of {repository}")
        self.filename = filename
        self.repository = repository


class TransactionStage(Enum):
    """Stages of a single-file update, in execution order."""

    START = "start"
    BRANCH_RESOLVED = "branch_resolved"
    TREE_FETCHED = "tree_fetched"
    BLOB_LOCATED = "blob_located"
    CONTENT_FETCHED = "content_fetched"
    TRANSFORMED = "transformed"
    BLOB_CREATED = "blob_created"
    TREE_CREATED = "tree_created"
    COMMIT_CREATED = "commit_created"
    REF_ADVANCED = "ref_advanced"
    FAILED = "failed"


@dataclass
class FileUpdateTransaction:
    """State of one read-modify-write of a single file.

    Every value captured here is derived from ``parent_commit``, the branch
    head observed when the transaction started.
    """

    filename: str
    commit_message: str
    stage: TransactionStage = TransactionStage.START
    failed_stage: Optional[TransactionStage] = None
    error: Optional[Exception] = None
    branch: Optional[str] = None
    parent_commit: Optional[str] = None
    parent_tree: Optional[str] = None
    blob_sha: Optional[str] = None
    new_blob: Optional[str] = None
    new_tree: Optional[str] = None
    new_commit: Optional[str] = None
    history: List[TransactionStage] = field(
        default_factory=lambda: [TransactionStage.START]
    )

    def advance(self, stage: TransactionStage) -> None:
        logger.debug(f"{self.filename}: {self.stage.value} -> {stage.value}")
        self.stage = stage
        self.history.append(stage)

    def fail(self, error: Exception) -> None:
        self.failed_stage = self.stage
        self.error = error
        self.advance(TransactionStage.FAILED)

    @property
    def succeeded(self) -> bool:
        return self.stage == TransactionStage.REF_ADVANCED


class ContentMutator:
    """Branch management and transactional file edits for one repository."""

    def __init__(self, client: GitDataAPIClient):
        """Initialize the mutator.

        Args:
            client: Git data client bound to the repository to operate on
        """
        self.client = client
        self.last_transaction: Optional[FileUpdateTransaction] = None

    @property
    def repository(self) -> RepositoryHandle:
        return self.client.repository

    async def get_default_branch(self) -> str:
        """Return the name of the repository's default branch.

        Raises:
            RepositoryNotFoundError: If the repository is missing, or
                ``RepositoryUnreachableError`` if no response was obtained;
                both are ``LookupError``
        """
        metadata = await self.client.fetch_repository_metadata()
        return metadata.default_branch

    async def set_default_branch(self, name: str) -> None:
        """Make ``name`` the default branch.

        The branch is not checked locally; the API rejects unknown branches
        with ``RemoteRejectedError``.
        """
        await self.client.update_repository_metadata(name)
        logger.info(f"{self.repository}: default branch set to '{name}'")

    async def get_branch_head_hash(self, branch: str) -> str:
        """Return the commit hash ``branch`` points at.

        Raises:
            NotFoundError: If the branch does not exist
        """
        ref = await self.client.fetch_ref(branch)
        return ref.sha

    async def create_branch(self, source_branch: str, new_branch: str) -> str:
        """Create ``new_branch`` at the head commit of ``source_branch``.

        Returns:
            Commit hash the new branch points at

        Raises:
            NotFoundError: If ``source_branch`` does not exist
            AlreadyExistsError: If ``new_branch`` already exists
        """
        sha = await self.get_branch_head_hash(source_branch)
        try:
            await self.client.create_ref(new_branch, sha)
        except AlreadyExistsError:
            logger.warning(
                f"{self.repository}: branch '{new_branch}' already exists, not created"
            )
            raise
        logger.info(
            f"{self.repository}: created branch '{new_branch}' from "
            f"'{source_branch}' at {sha}"
        )
        return sha

    async def create_branch_from_default(self, new_branch: str) -> str:
        """Create ``new_branch`` from the current default branch."""
        default_branch = await self.get_default_branch()
        return await self.create_branch(default_branch, new_branch)

    async def read_file(self, filename: str, branch: Optional[str] = None) -> str:
        """Return the text of ``filename`` at the head of ``branch``.

        Reads from the default branch when ``branch`` is not given.
        """
        if branch is None:
            branch = await self.get_default_branch()
        head = await self.get_branch_head_hash(branch)
        tree = await self.client.fetch_tree(head, recursive="/" in filename)
        blob_sha = tree.find_blob(filename)
        if blob_sha is None:
            raise FileNotInTreeError(filename, self.repository)
        blob = await self.client.fetch_blob(blob_sha)
        return blob.decode_text()

    async def update_file(
        self,
        filename: str,
        commit_message: str,
        transform: FileTransform,
        parameter: Any,
    ) -> str:
        """Replace the content of ``filename`` on the default branch.

        Fetches the current text, applies ``transform(content, parameter)``
        and commits the result on top of the branch head. A transform that
        changes nothing still produces a commit.

        Args:
            filename: Path of the file in the repository
            commit_message: Message of the new commit
            transform: Pure function producing the new content
            parameter: Second argument passed to ``transform``

        Returns:
            Hash of the new commit

        Raises:
            RepositoryNotFoundError, NotFoundError: If the default branch
                cannot be resolved
            FileNotInTreeError: If ``filename`` is absent from the head tree
            RemoteRejectedError: If the branch moved since it was resolved
            TransportError, APIClientError: If any remote call fails
        """
        transaction = FileUpdateTransaction(
            filename=filename, commit_message=commit_message
        )
        self.last_transaction = transaction

        try:
            await self._run(transaction, transform, parameter)
        except Exception as e:
            transaction.fail(e)
            logger.error(
                f"{self.repository}: update of {filename} failed after stage "
                f"'{transaction.failed_stage.value}': {e}"
            )
            raise

        logger.info(
            f"{self.repository}: committed {filename} as {transaction.new_commit} "
            f"on '{transaction.branch}'"
        )
        return cast(str, transaction.new_commit)

    async def _run(
        self,
        transaction: FileUpdateTransaction,
        transform: FileTransform,
        parameter: Any,
    ) -> None:
        client = self.client
        filename = transaction.filename

        transaction.branch = await self.get_default_branch()
        transaction.parent_commit = await self.get_branch_head_hash(
            transaction.branch
        )
        transaction.advance(TransactionStage.BRANCH_RESOLVED)

        tree = await client.fetch_tree(
            transaction.parent_commit, recursive="/" in filename
        )
        transaction.parent_tree = tree.sha
        transaction.advance(TransactionStage.TREE_FETCHED)

        transaction.blob_sha = tree.find_blob(filename)
        if transaction.blob_sha is None:
            raise FileNotInTreeError(filename, self.repository)
        transaction.advance(TransactionStage.BLOB_LOCATED)

        blob = await client.fetch_blob(transaction.blob_sha)
        content = blob.decode_text()
        transaction.advance(TransactionStage.CONTENT_FETCHED)

        new_content = transform(content, parameter)
        transaction.advance(TransactionStage.TRANSFORMED)

        transaction.new_blob = await client.create_blob(new_content)
        transaction.advance(TransactionStage.BLOB_CREATED)

        transaction.new_tree = await client.create_tree(
            transaction.parent_tree,
            [
                GitTreeEntry(
                    path=filename,
                    mode=BLOB_FILE_MODE,
                    type="blob",
                    sha=transaction.new_blob,
                )
            ],
        )
        transaction.advance(TransactionStage.TREE_CREATED)

        transaction.new_commit = await client.create_commit(
            transaction.commit_message,
            transaction.new_tree,
            [transaction.parent_commit],
        )
        transaction.advance(TransactionStage.COMMIT_CREATED)

        await client.update_ref(transaction.branch, transaction.new_commit)
        transaction.advance(TransactionStage.REF_ADVANCED)
