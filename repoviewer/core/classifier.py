# repoviewer/core/classifier.py
"""
Extension whitelist deciding whether a file may be collected and which
markdown language tag its fenced block gets.

Unknown files are binary. Whitelisted files are checked again by content
(`decode_text`) whenever they are read. Misclassifying a text file as binary
is acceptable; exporting binary bytes as text is not.
"""
from pathlib import Path
from typing import Dict, Optional, Union

from .models import BINARY, ContentKind, text_kind

# language tag -> lowercase extensions or full file names
_TEXT_TYPES = (
    # Programming languages
    ("rust", ["rs"]),
    ("python", ["py", "pyw", "pyi"]),
    ("javascript", ["js", "mjs", "cjs"]),
    ("typescript", ["ts", "tsx"]),
    ("jsx", ["jsx"]),
    ("java", ["java"]),
    ("cpp", ["cpp", "c++", "cxx", "cc", "hpp", "h++", "hxx", "h"]),
    ("c", ["c"]),
    ("csharp", ["cs", "csx"]),
    ("go", ["go"]),
    ("swift", ["swift"]),
    ("kotlin", ["kt", "kts"]),
    ("scala", ["scala", "sc"]),
    ("ruby", ["rb", "rbw", "rake", "gemspec"]),
    ("php", ["php", "php3", "php4", "php5", "phtml"]),
    ("perl", ["pl", "pm", "pod"]),
    ("lua", ["lua"]),
    ("r", ["r", "rmd"]),
    ("julia", ["jl"]),
    ("dart", ["dart"]),
    ("haskell", ["hs", "lhs"]),
    ("clojure", ["clj", "cljs", "cljc", "edn"]),
    ("elixir", ["ex", "exs"]),
    ("erlang", ["erl", "hrl"]),
    ("ocaml", ["ml", "mli"]),
    ("fsharp", ["fs", "fsx", "fsi"]),
    ("nim", ["nim", "nims"]),
    ("zig", ["zig"]),
    ("crystal", ["cr"]),
    ("v", ["v"]),
    ("solidity", ["sol"]),
    # Web
    ("html", ["html", "htm", "xhtml"]),
    ("css", ["css"]),
    ("scss", ["scss", "sass"]),
    ("less", ["less"]),
    ("vue", ["vue"]),
    ("svelte", ["svelte"]),
    ("astro", ["astro"]),
    # Shell & scripts
    ("bash", ["sh", "bash", "zsh", "fish", "ksh", "csh"]),
    ("powershell", ["ps1", "psm1", "psd1"]),
    ("batch", ["bat", "cmd"]),
    # Config / data
    ("json", ["json", "jsonc", "json5"]),
    ("yaml", ["yaml", "yml"]),
    ("toml", ["toml"]),
    ("xml", ["xml", "xsd", "xsl", "xslt", "svg"]),
    ("ini", ["ini", "cfg", "conf", "config"]),
    ("kdl", ["kdl"]),
    ("properties", ["properties", "props"]),
    ("graphql", ["graphql", "gql"]),
    ("protobuf", ["proto"]),
    # Markup and documentation
    ("markdown", ["md", "markdown", "mdown", "mdx"]),
    ("restructuredtext", ["rst", "rest"]),
    ("asciidoc", ["adoc", "asciidoc", "asc"]),
    ("latex", ["tex", "latex", "ltx"]),
    ("org", ["org"]),
    # Build & infra
    ("gradle", ["gradle", "gradle.kts"]),
    ("maven", ["pom"]),
    ("terraform", ["tf", "tfvars"]),
    ("hcl", ["hcl"]),
    ("sql", ["sql", "psql", "mysql"]),
    ("diff", ["diff", "patch"]),
    ("plaintext", ["txt", "text", "log", "logs", "out", "csv", "tsv", "lock"]),
    # Full file names
    ("makefile", ["makefile", "mk", "mak"]),
    ("cmake", ["cmakelists.txt", "cmake"]),
    ("dockerfile", ["dockerfile", "containerfile"]),
    ("go", ["go.mod", "go.sum"]),
    ("plaintext", [
        "license", "licence", "readme", "changelog", "authors",
        "contributors", "todo", "notes",
        ".gitignore", ".gitattributes", ".gitmodules", ".gitkeep",
        ".dockerignore", ".npmignore", ".eslintignore",
        ".env", ".env.example", ".env.sample",
        ".editorconfig", ".prettierrc", ".eslintrc", ".babelrc",
        ".nvmrc", ".rvmrc", "ruby-version", "node-version",
    ]),
)

TEXT_FILE_TYPES: Dict[str, str] = {
    name: language for language, names in _TEXT_TYPES for name in names
}


def language_for(path: Union[str, Path]) -> Optional[str]:
    """Returns the language tag for a whitelisted file name or extension, else None."""
    path = Path(path)
    name = path.name.lower()
    if name in TEXT_FILE_TYPES:
        return TEXT_FILE_TYPES[name]
    # Path.suffix is empty for dotfiles such as ".bashrc"
    suffix = path.suffix.lower().lstrip(".")
    if suffix:
        return TEXT_FILE_TYPES.get(suffix)
    return None


def classify(path: Union[str, Path]) -> ContentKind:
    language = language_for(path)
    return text_kind(language) if language else BINARY


# Content gate applied whenever a whitelisted file is actually read.
# More than one control byte per CONTROL_BYTE_RATIO bytes rejects the file.
CONTROL_BYTE_RATIO = 20
# Lossy utf-8 decoding may replace fewer than one character per this many bytes
REPLACEMENT_CHAR_RATIO = 1000
_NON_CONTROL_BYTES = bytes(b for b in range(256) if not ((b < 0x20 or b == 0x7F) and b not in b"\t\n\r"))


def decode_text(data: bytes) -> Optional[str]:
    """
    Decodes file content as utf-8 text, or returns None when the bytes look
    binary: any NUL byte, too many control bytes, or too many invalid utf-8
    sequences for a lossy decode.
    """
    if b"\x00" in data:
        return None
    control_bytes = len(data.translate(None, _NON_CONTROL_BYTES))
    if control_bytes > len(data) // CONTROL_BYTE_RATIO:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        pass
    lossy = data.decode("utf-8", errors="replace")
    if lossy.count("\ufffd") < len(lossy.encode("utf-8")) // REPLACEMENT_CHAR_RATIO:
        return lossy
    return None
