"""Project type detection from marker files in the working directory."""

from __future__ import annotations

from pathlib import Path

# Checked in order; the first hit wins
_MARKERS: tuple[tuple[str, str], ...] = (
    ("package.json", "node"),
    ("requirements.txt", "python"),
    ("pyproject.toml", "python"),
    ("setup.py", "python"),
    ("pom.xml", "java"),
    ("build.gradle", "java"),
    ("build.gradle.kts", "java"),
    ("CMakeLists.txt", "cpp"),
    ("*.csproj", "dotnet"),
    ("*.sln", "dotnet"),
    ("Cargo.toml", "rust"),
    ("go.mod", "go"),
)


def detect_project_type(cwd: str | Path) -> str | None:
    """Return node, python, java, cpp, dotnet, rust, go, or None."""
    root = Path(cwd)
    try:
        names = {p.name for p in root.iterdir()}
    except OSError:
        return None

    for marker, project_type in _MARKERS:
        if marker.startswith("*"):
            suffix = marker[1:]
            if any(name.endswith(suffix) for name in names):
                return project_type
        elif marker in names:
            return project_type
    return None
