"""MCP-compatible tool schema for AI agents."""

from __future__ import annotations

from ._version import __version__

_FILTER_PROPERTY = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Sub-repo names to target (default: every sub-repo)",
}

_JSON_PROPERTY = {
    "type": "boolean",
    "description": "Output as JSON for machine parsing",
    "default": False,
}

_SEQUENTIAL_PROPERTY = {
    "type": "boolean",
    "description": "Run sequentially instead of parallel",
    "default": False,
}

_BATCH_OUTPUT = {
    "type": "object",
    "properties": {
        "total": {"type": "integer"},
        "succeeded": {"type": "array", "items": {"type": "string"}},
        "failed": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "path": {"type": "string"},
                    "command": {"type": "string"},
                    "returncode": {"type": ["integer", "null"]},
                    "error": {"type": "string"},
                },
            },
        },
    },
}

_BRANCH_LIST = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "repository": {"type": "string"},
            "branch": {"type": "string"},
        },
    },
}


def _name_property(description: str) -> dict:
    return {"type": "string", "description": description}


def get_tool_schema() -> dict:
    """Generate MCP-compatible tool schema for AI agents."""
    return {
        "name": "git-puppet",
        "version": __version__,
        "description": "Run shell commands across every sub-repo of a workspace directory in parallel, and save or restore named snapshots of the branch checked out in each sub-repo. Sub-repos are the immediate child directories that contain a .git entry. Configurations are stored in $PUPPET_HOME/configs.json (default ~/.puppet/configs.json).",
        "usage": "puppet [--verbose] [--root PATH] <command> [args] [options]",
        "tools": [
            {
                "name": "command",
                "description": "Run a shell command in every sub-repo. Failures in one repo never stop the others; they are reported together at the end.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "command": _name_property("Shell command to run in each sub-repo"),
                        "filter": _FILTER_PROPERTY,
                        "json": _JSON_PROPERTY,
                        "sequential": _SEQUENTIAL_PROPERTY,
                    },
                    "required": ["command"],
                },
                "outputSchema": _BATCH_OUTPUT,
            },
            {
                "name": "update",
                "description": "Stash local changes, pull the current branch from origin and refresh dependencies in every sub-repo.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "filter": _FILTER_PROPERTY,
                        "json": _JSON_PROPERTY,
                        "sequential": _SEQUENTIAL_PROPERTY,
                    },
                    "required": [],
                },
                "outputSchema": _BATCH_OUTPUT,
            },
            {
                "name": "branches",
                "description": "Show the branch checked out in each sub-repo.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "filter": _FILTER_PROPERTY,
                        "json": _JSON_PROPERTY,
                    },
                    "required": [],
                },
                "outputSchema": {
                    "type": "object",
                    "properties": {"branches": _BRANCH_LIST},
                },
            },
            {
                "name": "save",
                "description": "Save the current branch of each sub-repo under a configuration name, overwriting any configuration with the same name.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "name": _name_property("Name of the configuration"),
                        "filter": _FILTER_PROPERTY,
                    },
                    "required": ["name"],
                },
            },
            {
                "name": "remove",
                "description": "Delete a saved configuration.",
                "inputSchema": {
                    "type": "object",
                    "properties": {"name": _name_property("Name of the configuration")},
                    "required": ["name"],
                },
            },
            {
                "name": "run",
                "description": "Check out the saved branch in every sub-repo of a configuration. Checkouts are independent and never rolled back.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "name": _name_property("Name of the configuration"),
                        "json": _JSON_PROPERTY,
                    },
                    "required": ["name"],
                },
                "outputSchema": _BATCH_OUTPUT,
            },
            {
                "name": "get",
                "description": "List saved configurations, or show the branches of one configuration.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "name": _name_property("Configuration to show (omit to list names)"),
                        "json": _JSON_PROPERTY,
                    },
                    "required": [],
                },
                "outputSchema": {
                    "type": "object",
                    "properties": {
                        "configs": {"type": "array", "items": {"type": "string"}},
                        "name": {"type": "string"},
                        "entries": _BRANCH_LIST,
                    },
                },
            },
        ],
        "exit_codes": {
            "0": "Success, including batches where some sub-repos failed",
            "1": "Configuration file missing or unreadable, invalid settings, or empty command",
        },
    }
