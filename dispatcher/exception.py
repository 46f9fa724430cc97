class SandboxError(Exception):
    """Base class for server-side faults (not the submitter's fault)."""


class WorkspaceError(SandboxError):
    """Raised when a workspace directory cannot be allocated."""
