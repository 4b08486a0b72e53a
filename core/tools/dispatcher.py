"""Tool dispatcher: maps model tool invocations onto the virtual file store.

Tools:
- create_files: write several files at once
- edit_file: tolerant (old -> new) edit through the patch engine
- read_file / delete_file / list_files
- write_file / complete: the single-shot tool pair

Tool-level problems (unknown tool, missing or malformed arguments, missing
files, unmatched edits) never raise; they come back as failed
ExecutionResults so the model can correct itself on the next turn.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from core.filestore import VirtualFileStore
from core.patch import apply_patch
from core.tools.json_repair import parse_arguments
from core.tools.schema import (
    REQUIRED_ARGS,
    TOOL_COMPLETE,
    TOOL_CREATE_FILES,
    TOOL_DELETE_FILE,
    TOOL_EDIT_FILE,
    TOOL_LIST_FILES,
    TOOL_READ_FILE,
    TOOL_WRITE_FILE,
)
from core.tools.types import ExecutionLogEntry, ExecutionResult, FileMutation, ToolInvocation

logger = logging.getLogger(__name__)

# Operation names recorded in the execution log
_OPERATIONS = {
    TOOL_CREATE_FILES: "create",
    TOOL_EDIT_FILE: "edit",
    TOOL_READ_FILE: "read",
    TOOL_DELETE_FILE: "delete",
    TOOL_LIST_FILES: "list",
    TOOL_WRITE_FILE: "write",
    TOOL_COMPLETE: "complete",
}


class ToolDispatcher:
    """Executes tool invocations against one run's file store.

    Owns an append-only execution log. One dispatcher per run; not shared.
    """

    def __init__(self, store: VirtualFileStore, *, allowed_tools: Iterable[str] | None = None):
        self.store = store
        self.allowed_tools = set(allowed_tools) if allowed_tools is not None else set(_OPERATIONS)
        self.completion_message: str | None = None
        self._log: list[ExecutionLogEntry] = []
        self._handlers: dict[str, Callable[[dict[str, Any], str], ExecutionResult]] = {
            TOOL_CREATE_FILES: self._create_files_impl,
            TOOL_EDIT_FILE: self._edit_file_impl,
            TOOL_READ_FILE: self._read_file_impl,
            TOOL_DELETE_FILE: self._delete_file_impl,
            TOOL_LIST_FILES: self._list_files_impl,
            TOOL_WRITE_FILE: self._write_file_impl,
            TOOL_COMPLETE: self._complete_impl,
        }

    @property
    def log(self) -> list[ExecutionLogEntry]:
        return list(self._log)

    @property
    def completed(self) -> bool:
        return self.completion_message is not None

    def files(self) -> dict[str, str]:
        return self.store.snapshot()

    def execute(self, invocation: ToolInvocation) -> ExecutionResult:
        name = invocation.name
        call_id = invocation.id
        operation = _OPERATIONS.get(name, name)

        handler = self._handlers.get(name)
        if handler is None or name not in self.allowed_tools:
            return self._fail(name, call_id, operation, "", f"Unknown tool: {name}")

        try:
            args = parse_arguments(invocation.arguments)
        except ValueError as e:
            return self._fail(name, call_id, operation, "", f"Malformed arguments for {name}: {e}")

        path = args.get("file_path") if isinstance(args.get("file_path"), str) else ""
        missing = [key for key in REQUIRED_ARGS[name] if args.get(key) is None]
        if missing:
            return self._fail(name, call_id, operation, path, f"Missing required argument(s): {', '.join(missing)}")

        try:
            return handler(args, call_id)
        except Exception as e:
            logger.exception("Tool %s failed unexpectedly", name)
            return self._fail(name, call_id, operation, path, f"Error executing {name}: {e}")

    def execute_all(self, invocations: Iterable[ToolInvocation]) -> list[ExecutionResult]:
        """Execute invocations sequentially in the order given."""
        return [self.execute(invocation) for invocation in invocations]

    # ── Internal helpers ──

    def _record(self, success: bool, path: str, operation: str, error: str | None = None, corrected: bool = False):
        self._log.append(
            ExecutionLogEntry(success=success, path=path, operation=operation, error=error, corrected=corrected)
        )

    def _fail(self, name: str, call_id: str, operation: str, path: str, error: str) -> ExecutionResult:
        logger.warning("Tool %s failed: %s", name, error)
        self._record(False, path, operation, error)
        return ExecutionResult(tool_name=name, success=False, call_id=call_id, error=error)

    # ── Tool implementations ──

    def _create_files_impl(self, args: dict[str, Any], call_id: str) -> ExecutionResult:
        files = args["files"]
        if not isinstance(files, dict) or not files:
            return self._fail(
                TOOL_CREATE_FILES, call_id, "create", "", "files must be a non-empty object mapping paths to contents"
            )

        created: list[str] = []
        errors: list[str] = []
        mutations: list[FileMutation] = []
        for path, content in files.items():
            if not path or not isinstance(content, str):
                error = "content must be a string" if path else "path must not be empty"
                errors.append(f"{path}: {error}")
                self._record(False, path, "create", error)
                continue
            self.store.write(path, content)
            created.append(path)
            mutations.append(FileMutation(kind="created", path=path, content=content))
            self._record(True, path, "create")

        data = {"created": created, "message": args.get("message") or f"Created {len(created)} files"}
        return ExecutionResult(
            tool_name=TOOL_CREATE_FILES,
            success=not errors,
            call_id=call_id,
            data=data,
            error=", ".join(errors) if errors else None,
            mutations=tuple(mutations),
        )

    def _edit_file_impl(self, args: dict[str, Any], call_id: str) -> ExecutionResult:
        file_path = args["file_path"]
        old_string = args["old_string"]
        new_string = args["new_string"]
        explanation = args.get("explanation")

        if not isinstance(old_string, str) or not isinstance(new_string, str):
            return self._fail(TOOL_EDIT_FILE, call_id, "edit", file_path, "old_string and new_string must be strings")

        content = self.store.read(file_path)
        if content is None:
            return self._fail(TOOL_EDIT_FILE, call_id, "edit", file_path, f"File not found: {file_path}")

        result = apply_patch(content, old_string, new_string, file_path)
        if not result.ok:
            return self._fail(TOOL_EDIT_FILE, call_id, "edit", file_path, result.error)

        self.store.write(file_path, result.content)
        self._record(True, file_path, "edit", corrected=result.corrected)
        return ExecutionResult(
            tool_name=TOOL_EDIT_FILE,
            success=True,
            call_id=call_id,
            data={
                "path": file_path,
                "explanation": explanation,
                "strategy": result.strategy,
                "replacements": result.replacements,
            },
            mutations=(FileMutation(kind="edited", path=file_path, content=result.content, note=explanation),),
        )

    def _read_file_impl(self, args: dict[str, Any], call_id: str) -> ExecutionResult:
        file_path = args["file_path"]
        content = self.store.read(file_path)
        if content is None:
            return self._fail(TOOL_READ_FILE, call_id, "read", file_path, f"File not found: {file_path}")

        self._record(True, file_path, "read")
        return ExecutionResult(
            tool_name=TOOL_READ_FILE, success=True, call_id=call_id, data={"path": file_path, "content": content}
        )

    def _delete_file_impl(self, args: dict[str, Any], call_id: str) -> ExecutionResult:
        file_path = args["file_path"]
        reason = args.get("reason")
        if not self.store.delete(file_path):
            return self._fail(TOOL_DELETE_FILE, call_id, "delete", file_path, f"File not found: {file_path}")

        self._record(True, file_path, "delete")
        return ExecutionResult(
            tool_name=TOOL_DELETE_FILE,
            success=True,
            call_id=call_id,
            data={"path": file_path, "reason": reason},
            mutations=(FileMutation(kind="deleted", path=file_path, note=reason),),
        )

    def _list_files_impl(self, args: dict[str, Any], call_id: str) -> ExecutionResult:
        self._record(True, "", "list")
        return ExecutionResult(
            tool_name=TOOL_LIST_FILES, success=True, call_id=call_id, data={"files": self.store.list()}
        )

    def _write_file_impl(self, args: dict[str, Any], call_id: str) -> ExecutionResult:
        file_path = args["file_path"]
        content = args["content"]
        if not file_path or not isinstance(content, str):
            return self._fail(TOOL_WRITE_FILE, call_id, "write", file_path, "file_path and content must be strings")

        existed = self.store.exists(file_path)
        self.store.write(file_path, content)
        self._record(True, file_path, "write")
        return ExecutionResult(
            tool_name=TOOL_WRITE_FILE,
            success=True,
            call_id=call_id,
            data={"path": file_path, "created": [] if existed else [file_path], "size": len(content)},
            mutations=(FileMutation(kind="edited" if existed else "created", path=file_path, content=content),),
        )

    def _complete_impl(self, args: dict[str, Any], call_id: str) -> ExecutionResult:
        self.completion_message = args.get("message") or "Generation complete."
        self._record(True, "", "complete")
        return ExecutionResult(
            tool_name=TOOL_COMPLETE, success=True, call_id=call_id, data={"message": self.completion_message}
        )
