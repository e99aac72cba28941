# repoviewer/services/clipboard.py
import time

import pyperclip
from loguru import logger

from ..core.errors import ExportError


def copy_text(text: str) -> None:
    """Hands ``text`` to the OS clipboard. Raises ExportError if no clipboard is usable."""
    logger.info("Copying content to clipboard...")
    start_time = time.time()
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        logger.error(f"Error copying to clipboard: {e}")
        raise ExportError(f"Clipboard unavailable: {e}", "clipboard") from e
    logger.debug(f"pyperclip.copy() finished in {time.time() - start_time:.3f} seconds.")
