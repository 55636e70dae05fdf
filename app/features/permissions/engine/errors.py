"""
Exceptions raised by the permission engine.
"""


class PermissionEngineError(Exception):
    """Base class for all engine errors."""


class StructuralError(PermissionEngineError):
    """
    A catalog record references a parent that does not exist.

    Never raised out of the tree builder: the orphan is dropped and the
    error is returned as a warning.
    """

    def __init__(self, node_id: str, parent_id: str):
        self.node_id = node_id
        self.parent_id = parent_id
        super().__init__(f"{node_id} references missing parent {parent_id}")


class UnknownNodeError(PermissionEngineError, KeyError):
    """A node id is not part of the loaded tree."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(node_id)

    def __str__(self) -> str:
        return f"Unknown node {self.node_id}"


class InvalidPathError(PermissionEngineError, ValueError):
    """A navigation path does not follow parent/child links."""


class FetchError(PermissionEngineError):
    """Loading the tree, a baseline or overrides from the gateway failed."""


class SaveError(PermissionEngineError):
    """Committing a payload through the gateway failed."""


class SaveInProgressError(PermissionEngineError):
    """A save was requested while another save for the same subject is pending."""


class InertEditorError(PermissionEngineError):
    """The editor failed to load and accepts no mutations."""


class UnknownEditorError(PermissionEngineError, KeyError):
    """No open editor has the requested id."""

    def __init__(self, editor_id: str):
        self.editor_id = editor_id
        super().__init__(editor_id)

    def __str__(self) -> str:
        return f"Unknown editor {self.editor_id}"


class UnsavedChangesError(PermissionEngineError):
    """An editor with unsaved changes was asked to close without ``force``."""
