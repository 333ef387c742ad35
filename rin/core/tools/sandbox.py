"""
rin.core.tools.sandbox - Per-caller path containment for file tools.

Non-privileged callers are confined to their own folder under the uploads
directory. Privileged callers address the filesystem directly, except that
``send_file`` with a bare relative name still looks in the caller's folder.
"""

import os
from pathlib import Path

from rin.errors import SandboxViolation

ACCESS_DENIED = "Access denied: Path is outside your designated folder."


def _escapes(relative: str) -> bool:
    return relative.startswith("..") or os.path.isabs(relative)


def resolve_sandboxed_path(
    requested: str | None,
    root: Path | str,
    privileged: bool = False,
    op: str = "",
) -> Path:
    """
    Resolve a tool-supplied path for a caller.

    Args:
        requested: Path as given by the model (may be empty)
        root: The caller's own folder
        privileged: Whether the caller bypasses containment (admins)
        op: Tool name, used for the ``send_file`` bare-name convenience

    Returns:
        Absolute path to operate on

    Raises:
        SandboxViolation: If a non-privileged caller's path leaves ``root``,
            directly or through a symlink anywhere along the path
    """
    root_dir = os.path.abspath(os.fspath(root))

    if privileged:
        if op == "send_file" and requested and not os.path.isabs(requested):
            return Path(root_dir, requested)
        return Path(requested or ".")

    relative_input = str(requested or "").lstrip("/\\")
    resolved = os.path.abspath(os.path.join(root_dir, relative_input))

    relative = os.path.relpath(resolved, root_dir)
    if relative != "." and _escapes(relative):
        raise SandboxViolation(ACCESS_DENIED)

    # realpath follows every existing component, so a new file under a
    # symlinked folder is checked against where it would really land
    real_relative = os.path.relpath(os.path.realpath(resolved), os.path.realpath(root_dir))
    if real_relative != "." and _escapes(real_relative):
        raise SandboxViolation(ACCESS_DENIED)

    return Path(resolved)
