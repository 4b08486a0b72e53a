"""System prompts for the two loop strategies."""

from __future__ import annotations

from collections.abc import Mapping

SINGLE_SHOT_INSTRUCTIONS = """You are an expert software engineer generating a complete project in one pass.

TOOL USAGE:
1. Call write_file once for EACH file, always with the full file content.
2. When every file has been written, call complete with a short summary.
3. Do not answer with plain text; every reply must be a tool call."""

MULTI_TURN_INSTRUCTIONS = """You are an expert software engineer iteratively building and modifying a project.

TOOL USAGE:
1. Use create_files for initial generation or for adding new files.
2. Use edit_file for surgical modifications; include enough surrounding context in old_string.
3. Use read_file to check the current contents of a file before editing it.
4. Use delete_file to remove files that are no longer needed.
5. Use list_files to see which files exist.

When you are done with your changes, reply with a short summary of what was created or modified."""

_MAX_LISTED_PATHS = 200


def _file_listing(paths: list[str]) -> str:
    if not paths:
        return "The project is currently empty."
    shown = paths[:_MAX_LISTED_PATHS]
    lines = [f"- {path}" for path in shown]
    if len(paths) > len(shown):
        lines.append(f"- ... and {len(paths) - len(shown)} more (use list_files)")
    return "Current project files:\n" + "\n".join(lines)


def build_system_prompt(
    strategy: str,
    paths: list[str],
    *,
    context: Mapping[str, str] | None = None,
    extra_instructions: str | None = None,
) -> str:
    sections = [SINGLE_SHOT_INSTRUCTIONS if strategy == "single_shot" else MULTI_TURN_INSTRUCTIONS]
    sections.append(_file_listing(paths))
    if context:
        sections.append("PROJECT CONTEXT:\n" + "\n".join(f"- {key}: {value}" for key, value in context.items()))
    if extra_instructions:
        sections.append(extra_instructions.strip())
    return "\n\n".join(sections)
