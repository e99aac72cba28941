# repoviewer/core/git_repo.py
from pathlib import Path
from typing import Optional, Union

from loguru import logger


def find_repository_root(start: Union[str, Path]) -> Optional[Path]:
    """
    Walks from ``start`` up through its parents and returns the first directory
    holding a ``.git`` entry. A ``.git`` file (worktrees, submodules) counts too.
    Returns None outside a repository.
    """
    try:
        current = Path(start).resolve()
    except OSError as e:
        logger.warning(f"Could not resolve {start} for repository lookup: {e}")
        return None

    for candidate in (current, *current.parents):
        try:
            if (candidate / ".git").exists():
                logger.debug(f"Repository root for {current}: {candidate}")
                return candidate
        except OSError as e:
            logger.trace(f"Skipping {candidate} during repository lookup: {e}")
            continue

    logger.debug(f"No repository found above {current}")
    return None
