"""Plain text search and overviews over the project workspace.

The workspace is a directory whose immediate children are project
directories. Nothing here is indexed; every call walks the filesystem.
"""

from collections import Counter
from pathlib import Path
from typing import Any

from memex_search.errors import ProjectNotFoundError
from memex_search.logging import get_logger

logger = get_logger("workspace")

PROJECT_SCAN_LIMIT = 20
MATCH_PREVIEW_LENGTH = 200
SKIPPED_DIRECTORIES = frozenset({"node_modules", ".git"})

TEXT_EXTENSIONS = frozenset({
    "js", "ts", "py", "java", "cpp", "c", "h", "css", "html", "xml", "json", "md", "txt",
    "yml", "yaml", "toml", "ini", "cfg", "sh", "rb", "php", "go", "rs", "swift", "kt",
})

MAIN_FILES = (
    "package.json", "requirements.txt", "Cargo.toml", "go.mod", "pom.xml",
    "README.md", "main.py", "index.js", "index.ts", "app.py",
)

# (technology, file extensions, marker files)
TECHNOLOGY_RULES: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("JavaScript/TypeScript", ("js", "ts"), ("package.json",)),
    ("Python", ("py",), ("requirements.txt",)),
    ("Rust", ("rs",), ("Cargo.toml",)),
    ("Go", ("go",), ("go.mod",)),
    ("Java", ("java",), ("pom.xml",)),
)


def _extension(path: Path) -> str:
    return path.suffix[1:]


def _search_project(
    directory: Path,
    project: str,
    workspace_path: Path,
    needle: str,
    file_types: set[str],
    results: list[dict[str, Any]],
    limit: int,
) -> None:
    try:
        entries = sorted(directory.iterdir())
    except OSError as e:
        logger.debug("Skipping unreadable directory: path=%s error=%s", directory, e)
        return

    for entry in entries:
        if len(results) >= limit:
            return

        if entry.is_dir():
            if entry.name not in SKIPPED_DIRECTORIES:
                _search_project(entry, project, workspace_path, needle, file_types, results, limit)
            continue
        if not entry.is_file():
            continue

        ext = _extension(entry)
        if file_types and ext not in file_types:
            continue

        relative = str(entry.relative_to(workspace_path))
        if needle in entry.name.lower():
            results.append({"project": project, "file": relative, "match": f"filename: {entry.name}"})
            continue

        if ext.lower() not in TEXT_EXTENSIONS:
            continue
        try:
            lines = entry.read_text(encoding="utf-8").split("\n")
        except (OSError, UnicodeDecodeError):
            continue
        for number, line in enumerate(lines, start=1):
            if needle in line.lower():
                results.append({
                    "project": project,
                    "file": relative,
                    "match": line.strip()[:MATCH_PREVIEW_LENGTH],
                    "line": number,
                })
                break


def search_projects(
    workspace_path: Path,
    query: str,
    file_types: list[str] | None = None,
    limit: int = 10,
) -> list[dict[str, Any]]:
    """Search file names and contents across workspace projects.

    Only the first PROJECT_SCAN_LIMIT projects are searched, and only the
    first matching line of each file is reported.

    Args:
        workspace_path: Directory containing project directories
        query: Case-insensitive substring to look for
        file_types: Extensions without the dot (e.g. ["py", "md"]); empty means all
        limit: Maximum number of results

    Returns:
        Result dicts with project, file (relative to the workspace), match and
        line (for content matches)

    Raises:
        OSError: If the workspace directory cannot be listed
    """
    needle = query.lower()
    wanted = {t.lstrip(".") for t in file_types or []}
    results: list[dict[str, Any]] = []

    projects = sorted(workspace_path.iterdir())[:PROJECT_SCAN_LIMIT]
    for project_path in projects:
        if not project_path.is_dir():
            continue
        _search_project(
            project_path, project_path.name, workspace_path, needle, wanted, results, limit
        )
        if len(results) >= limit:
            break

    return results[:limit]


def get_project_overview(workspace_path: Path, project_name: str) -> dict[str, Any]:
    """Summarize the top level of a project directory.

    Raises:
        ProjectNotFoundError: If the project is not a directory in the workspace
    """
    project_path = workspace_path / project_name
    if not project_path.is_dir():
        raise ProjectNotFoundError(f"{project_name} is not a directory")

    directories: list[str] = []
    main_files: list[str] = []
    file_types: Counter[str] = Counter()
    file_count = 0

    for entry in sorted(project_path.iterdir()):
        if entry.is_dir():
            if entry.name not in SKIPPED_DIRECTORIES:
                directories.append(entry.name)
        elif entry.is_file():
            file_count += 1
            ext = _extension(entry)
            if ext:
                file_types[ext] += 1
            if entry.name in MAIN_FILES:
                main_files.append(entry.name)

    technologies = [
        name
        for name, extensions, markers in TECHNOLOGY_RULES
        if any(file_types[ext] for ext in extensions) or any(m in main_files for m in markers)
    ]

    return {
        "name": project_path.name,
        "path": str(project_path),
        "file_count": file_count,
        "directories": directories,
        "file_types": dict(file_types),
        "main_files": main_files,
        "technologies": technologies,
    }
