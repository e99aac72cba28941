# repoviewer/config/schema.py
from typing import List

from pydantic import BaseModel, Field

from ..core.models import MEGABYTE


class AppConfig(BaseModel):
    # Initial visibility filters for browsing and tree export
    show_hidden: bool = False
    show_ignored: bool = False
    tree_depth: int = Field(default=10, ge=1) # Default --depth of the tree command
    max_file_size_mb: float = Field(default=10, gt=0) # Larger files are refused by the collection
    max_expand_depth: int = Field(default=64, ge=1) # Recursion cap when adding whole directories
    token_encoding: str = "cl100k_base"
    # Matched like .gitignore lines, on top of the repository's own .gitignore
    extra_ignore_patterns: List[str] = Field(default_factory=list)

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * MEGABYTE)
