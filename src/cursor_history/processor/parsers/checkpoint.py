"""Inline diff synthesis from message checkpoints.

Some message generations store an edit only as a checkpoint::

    "checkpoint": {
        "files": [{
            "uri": {"path": "/repo/src/app.ts"},
            "original": {"startLineNumber": 10, "endLineNumberExclusive": 14},
            "modified": ["line one", "line two"]
        }]
    }

Each file with modified lines becomes (or replaces) the code block for that
file so the edit survives normalization.
"""

from dataclasses import replace
from pathlib import PurePosixPath
from typing import Any

from cursor_history.models import CodeBlock

EXTENSION_LANGUAGES: dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "jsx",
    ".ts": "typescript",
    ".mts": "typescript",
    ".tsx": "tsx",
    ".json": "json",
    ".md": "markdown",
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".scss": "scss",
    ".sh": "bash",
    ".bash": "bash",
    ".zsh": "zsh",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".toml": "toml",
    ".sql": "sql",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
    ".swift": "swift",
    ".rb": "ruby",
    ".php": "php",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".graphql": "graphql",
    ".vue": "vue",
    ".svelte": "svelte",
    ".xml": "xml",
}


def language_for_path(file_path: str) -> str:
    """Guess a fence language from a file extension, else empty."""
    # Windows paths arrive with forward slashes from file URIs
    suffix = PurePosixPath(file_path.replace("\\", "/")).suffix.lower()
    return EXTENSION_LANGUAGES.get(suffix, "")


def _file_path(entry: dict) -> str | None:
    uri = entry.get("uri")
    if isinstance(uri, dict):
        path = uri.get("path") or uri.get("fsPath")
        return path if isinstance(path, str) and path else None
    if isinstance(uri, str) and uri:
        return uri
    return None


def _line(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def apply_checkpoint(
    code_blocks: list[CodeBlock],
    checkpoint: Any,
) -> list[CodeBlock]:
    """Merge a checkpoint's file edits into a message's code blocks.

    Args:
        code_blocks: Code blocks already recovered for the message
        checkpoint: The message's raw `checkpoint` value

    Returns:
        New list of code blocks; the input list is not modified
    """
    if not isinstance(checkpoint, dict):
        return list(code_blocks)
    files = checkpoint.get("files")
    if not isinstance(files, list):
        return list(code_blocks)

    blocks = list(code_blocks)
    for entry in files:
        if not isinstance(entry, dict):
            continue
        modified = entry.get("modified")
        if not isinstance(modified, list) or not modified:
            continue
        file_path = _file_path(entry)
        if file_path is None:
            continue

        original = entry.get("original") if isinstance(entry.get("original"), dict) else {}
        line_start = _line(original.get("startLineNumber"))
        end_exclusive = _line(original.get("endLineNumberExclusive"))
        line_end = None
        if end_exclusive is not None:
            line_end = end_exclusive - 1
            if line_start is not None and line_end < line_start:
                line_end = line_start

        code = "\n".join(str(line) for line in modified)

        for index, block in enumerate(blocks):
            if block.file_path == file_path:
                blocks[index] = replace(
                    block,
                    code=code,
                    line_start=line_start,
                    line_end=line_end,
                )
                break
        else:
            blocks.append(
                CodeBlock(
                    code=code,
                    language=language_for_path(file_path),
                    file_path=file_path,
                    line_start=line_start,
                    line_end=line_end,
                )
            )

    return blocks
