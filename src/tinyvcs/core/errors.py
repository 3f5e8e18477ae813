"""User-facing error conditions of TinyVCS operations.

Every precondition violation of a public operation has its own exception
type carrying a fixed, human-readable message. They are raised before the
operation changes any state, so the repository is left as it was.
"""


class VCSError(Exception):
    """Base class for user errors (precondition violations)."""

    message = "Operation failed."

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.message)

    def __str__(self) -> str:
        return self.args[0]


class NotARepositoryError(VCSError):
    message = "Not in an initialized tinyvcs directory."


class RepositoryExistsError(VCSError):
    message = "A tinyvcs version-control system already exists in the current directory."


class FileNotFoundInWorkspaceError(VCSError):
    message = "File does not exist."


class NothingToRemoveError(VCSError):
    message = "No reason to remove the file."


class EmptyCommitError(VCSError):
    message = "No changes added to the commit."


class EmptyMessageError(VCSError):
    message = "Please enter a commit message."


class FileNotInCommitError(VCSError):
    message = "File does not exist in that commit."


class NoSuchCommitError(VCSError):
    message = "No commit with that id exists."


class AmbiguousCommitIdError(VCSError):
    message = "Commit id is ambiguous; use more characters."


class NoSuchBranchError(VCSError):
    message = "No such branch exists."


class BranchExistsError(VCSError):
    message = "A branch with that name already exists."


class InvalidBranchNameError(VCSError):
    message = "Invalid branch name."


class CannotDeleteCurrentError(VCSError):
    message = "Cannot remove the current branch."


class AlreadyCurrentError(VCSError):
    message = "No need to checkout the current branch."


class UntrackedFileInTheWayError(VCSError):
    message = "There is an untracked file in the way; delete it or add it first."


class SelfMergeError(VCSError):
    message = "Cannot merge a branch with itself."


class UncommittedChangesError(VCSError):
    message = "You have uncommitted changes."


class NoCommitFoundError(VCSError):
    message = "Found no commit with that message."


class PathOutsideWorkspaceError(VCSError):
    message = "Path is outside the working directory."
