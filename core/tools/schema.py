"""Tool schemas offered to the model, in OpenAI function format."""

from __future__ import annotations

TOOL_CREATE_FILES = "create_files"
TOOL_EDIT_FILE = "edit_file"
TOOL_READ_FILE = "read_file"
TOOL_DELETE_FILE = "delete_file"
TOOL_LIST_FILES = "list_files"
TOOL_WRITE_FILE = "write_file"
TOOL_COMPLETE = "complete"

# Required arguments per tool, checked lazily by the dispatcher
REQUIRED_ARGS: dict[str, tuple[str, ...]] = {
    TOOL_CREATE_FILES: ("files",),
    TOOL_EDIT_FILE: ("file_path", "old_string", "new_string"),
    TOOL_READ_FILE: ("file_path",),
    TOOL_DELETE_FILE: ("file_path",),
    TOOL_LIST_FILES: (),
    TOOL_WRITE_FILE: ("file_path", "content"),
    TOOL_COMPLETE: (),
}

_FILE_PATH = {"type": "string", "description": "Project-relative path, e.g. src/App.jsx"}


def _function(name: str, description: str, properties: dict, required: list[str]) -> dict:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {"type": "object", "properties": properties, "required": required},
        },
    }


CREATE_FILES_TOOL = _function(
    TOOL_CREATE_FILES,
    "Create one or more new files in the project. Use for initial generation or adding new files.",
    {
        "files": {
            "type": "object",
            "description": "Map of file paths to full file contents",
            "additionalProperties": {"type": "string"},
        },
        "message": {"type": "string", "description": "Brief explanation of what was created"},
    },
    ["files", "message"],
)

EDIT_FILE_TOOL = _function(
    TOOL_EDIT_FILE,
    (
        "Make a surgical edit to an existing file by replacing specific content. "
        "Include enough surrounding context in old_string to identify the location; "
        "every occurrence of an exact match is replaced."
    ),
    {
        "file_path": _FILE_PATH,
        "old_string": {"type": "string", "description": "Text to find and replace"},
        "new_string": {"type": "string", "description": "New text to replace with"},
        "explanation": {"type": "string", "description": "Brief explanation of the change"},
    },
    ["file_path", "old_string", "new_string", "explanation"],
)

READ_FILE_TOOL = _function(
    TOOL_READ_FILE,
    "Read the current contents of a file.",
    {"file_path": _FILE_PATH},
    ["file_path"],
)

DELETE_FILE_TOOL = _function(
    TOOL_DELETE_FILE,
    "Delete a file from the project.",
    {
        "file_path": _FILE_PATH,
        "reason": {"type": "string", "description": "Why the file is no longer needed"},
    },
    ["file_path", "reason"],
)

LIST_FILES_TOOL = _function(TOOL_LIST_FILES, "List all files in the project.", {}, [])

WRITE_FILE_TOOL = _function(
    TOOL_WRITE_FILE,
    "Write one complete file (creates it or overwrites it). Call once per file.",
    {
        "file_path": _FILE_PATH,
        "content": {"type": "string", "description": "Full file content"},
    },
    ["file_path", "content"],
)

COMPLETE_TOOL = _function(
    TOOL_COMPLETE,
    "Signal that every file has been written. Call exactly once, after the last write_file.",
    {"message": {"type": "string", "description": "Summary of what was built"}},
    ["message"],
)

MULTI_TURN_TOOLS: list[dict] = [CREATE_FILES_TOOL, EDIT_FILE_TOOL, READ_FILE_TOOL, DELETE_FILE_TOOL, LIST_FILES_TOOL]
SINGLE_SHOT_TOOLS: list[dict] = [WRITE_FILE_TOOL, COMPLETE_TOOL]


def tool_names(tools: list[dict]) -> list[str]:
    return [t["function"]["name"] for t in tools]
