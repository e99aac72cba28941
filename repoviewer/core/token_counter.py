# repoviewer/core/token_counter.py
from functools import lru_cache
from typing import Optional, Any
from loguru import logger

# --- Tiktoken Initialization ---
try:
    import tiktoken
    TIKTOKEN_AVAILABLE = True
except ImportError:
    logger.warning("tiktoken library not found. Token counts will be estimated.")
    tiktoken = None # type: ignore
    TIKTOKEN_AVAILABLE = False

DEFAULT_ENCODING = "cl100k_base"
FALLBACK_ENCODING = "gpt2"


@lru_cache(maxsize=4)
def _get_cached_encoder(encoding_name: str) -> Optional[Any]:
    """Loads and caches a tiktoken encoder, falling back to gpt2 once."""
    if not TIKTOKEN_AVAILABLE:
        return None
    try:
        encoder = tiktoken.get_encoding(encoding_name) # type: ignore
        logger.debug(f"Loaded tiktoken encoder '{encoding_name}'.")
        return encoder
    except Exception as e:
        # tiktoken downloads encodings on first use, so offline machines land here
        logger.warning(f"Failed to get tiktoken encoder '{encoding_name}': {e}.")
        if encoding_name == FALLBACK_ENCODING:
            return None
        return _get_cached_encoder(FALLBACK_ENCODING)


def estimate_tokens(text: str) -> int:
    return len(text) // 4


def count_tokens(text: str, encoding_name: str = DEFAULT_ENCODING) -> int:
    """
    Counts tokens of an export with tiktoken. Falls back to a character-based
    estimate when tiktoken or the encoding is unavailable.
    """
    if not text:
        return 0
    encoder = _get_cached_encoder(encoding_name)
    if encoder is None:
        return estimate_tokens(text)
    try:
        return len(encoder.encode(text, disallowed_special=()))
    except Exception as e:
        logger.error(f"Error encoding text for token count with '{encoding_name}': {e}")
        return estimate_tokens(text)
