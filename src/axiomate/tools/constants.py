"""Catalog id conventions and keyword tables used by the tool mask."""

from __future__ import annotations

import sys

CORE_PREFIX = "a-c-"
ACTION_PREFIX = "a-"
PLAN_PREFIX = "p-"

PLAN_TOOL = "p-plan"
PLAN_TOOLS = frozenset({PLAN_TOOL})

# Always visible in action mode (when present in the catalog)
ACTION_CORE_TOOLS = frozenset(
    {
        "a-c-askuser",
        "a-c-file",
        "a-c-web",
        "a-c-git",
        "a-c-enterplan",
    }
)

WINDOWS_SHELL_TOOLS = frozenset({"a-c-powershell", "a-c-pwsh", "a-c-cmd"})
UNIX_SHELL_TOOLS = frozenset({"a-c-bash"})

# Lowercase keywords; a case-insensitive substring hit adds the tool
KEYWORD_TO_TOOL: dict[str, tuple[str, ...]] = {
    "a-c-web": (
        "http", "https", "url", "fetch", "web", "webpage", "website",
        "网页", "网站", "链接",
    ),
    "a-c-git": (
        "git", "commit", "branch", "merge", "push", "pull", "clone",
        "checkout", "stash", "rebase", "提交", "分支",
    ),
    "a-node": (
        "node", "nodejs", "npm", "npx", "yarn", "pnpm", "package.json",
        "javascript", "typescript",
    ),
    "a-python": ("python", "pip", "pyenv", "conda", "poetry", "requirements.txt"),
    "a-java": ("java", "javac", "maven", "gradle", "mvn"),
    "a-cmake": ("cmake", "cmakelists", "make"),
    "a-gradle": ("gradle", "gradlew"),
    "a-maven": ("maven", "mvn", "pom.xml"),
    "a-docker": ("docker", "dockerfile", "container", "compose", "容器"),
    "a-dockercompose": ("dockercompose", "docker compose", "compose.yml"),
    "a-mysql": ("mysql", "mariadb"),
    "a-psql": ("postgresql", "postgres", "psql"),
    "a-sqlite3": ("sqlite", "sqlite3"),
    "a-vscode": ("vscode", "code", "visual studio code"),
    "a-vs2022": ("visual studio", "msbuild", "sln", "csproj"),
    "a-beyondcompare": ("beyond compare", "diff", "compare", "merge files"),
}

PROJECT_TYPE_TOOLS: dict[str, tuple[str, ...]] = {
    "node": ("a-node", "a-npm"),
    "python": ("a-python",),
    "java": ("a-java", "a-javac", "a-maven", "a-gradle"),
    "cpp": ("a-cmake",),
    "dotnet": ("a-vs2022", "a-msbuild"),
}


def platform_shell_tools(platform: str | None = None) -> frozenset[str]:
    """Shell tool ids for the host (or given) platform."""
    if (platform or sys.platform) == "win32":
        return WINDOWS_SHELL_TOOLS
    return UNIX_SHELL_TOOLS
