"""Subprocess helpers for running external commands.

Every external program (``git``, ``gh``, the agent runner) is invoked through
the two-method :class:`CommandRunner` protocol so orchestration code can be
driven by a scripted fake in tests.
"""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import IO, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class CommandError(RuntimeError):
    """Raised when an external command cannot run or exits non-zero.

    ``output`` holds the captured stdout (and stderr, when merged) so callers
    can still inspect what the command printed before failing.
    """

    def __init__(
        self,
        *,
        argv: tuple[str, ...],
        detail: str,
        output: str = "",
        returncode: int | None = None,
    ) -> None:
        super().__init__(detail)
        self.argv = argv
        self.detail = detail
        self.output = output
        self.returncode = returncode


class CommandParseError(RuntimeError):
    """Raised when command output parsing fails."""

    def __init__(self, *, detail: str, context: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.context = context


class CommandRunner(Protocol):
    """Runtime command-execution interface."""

    def run(
        self, cwd: Path, program: str, *args: str, merge_stderr: bool = True
    ) -> str: ...

    def run_interactive(
        self,
        cwd: Path,
        program: str,
        *args: str,
        stdin: IO[str] | None = None,
        stdout: IO[str] | None = None,
        stderr: IO[str] | None = None,
    ) -> None: ...


def _command_text(program: str, args: tuple[str, ...]) -> str:
    return " ".join([program, *args])


def _missing_command_error(program: str, args: tuple[str, ...]) -> CommandError:
    return CommandError(
        argv=(program, *args),
        detail=f"missing required command: {program}",
    )


def _failure_error(
    program: str,
    args: tuple[str, ...],
    output: str,
    returncode: int,
    *,
    stderr: str = "",
) -> CommandError:
    message = stderr or output
    if message:
        detail = f"{_command_text(program, args)} failed: {message}"
    else:
        detail = f"{_command_text(program, args)} failed: exit status {returncode}"
    return CommandError(
        argv=(program, *args),
        detail=detail,
        output=output,
        returncode=returncode,
    )


def _text(raw: object) -> str:
    return raw.strip() if isinstance(raw, str) else ""


class SubprocessCommandRunner:
    """Default command-runner adapter backed by subprocess."""

    def run(
        self, cwd: Path, program: str, *args: str, merge_stderr: bool = True
    ) -> str:
        """Run a command and return its trimmed output.

        With ``merge_stderr=False`` stderr is captured separately: only stdout
        is returned, and stderr is used for the failure message.
        """
        try:
            completed = subprocess.run(
                [program, *args],
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise _missing_command_error(program, args) from exc
        output = _text(completed.stdout)
        if completed.returncode != 0:
            raise _failure_error(
                program,
                args,
                output,
                completed.returncode,
                stderr="" if merge_stderr else _text(completed.stderr),
            )
        return output

    def run_interactive(
        self,
        cwd: Path,
        program: str,
        *args: str,
        stdin: IO[str] | None = None,
        stdout: IO[str] | None = None,
        stderr: IO[str] | None = None,
    ) -> None:
        try:
            completed = subprocess.run(
                [program, *args],
                cwd=cwd,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
                check=False,
            )
        except FileNotFoundError as exc:
            raise _missing_command_error(program, args) from exc
        if completed.returncode != 0:
            raise _failure_error(program, args, "", completed.returncode)


def _parse_json_payload(raw: str, *, context: str | None = None) -> object:
    context_suffix = f" ({context})" if context else ""
    text = raw.strip()
    if not text:
        raise CommandParseError(
            detail=f"failed to parse command output{context_suffix}: empty output",
            context=context,
        )
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise CommandParseError(
            detail=f"failed to parse command output{context_suffix}: {exc}",
            context=context,
        ) from exc


def parse_json_model(
    raw: str, *, model_type: type[ModelT], context: str | None = None
) -> ModelT:
    """Parse JSON command output into a validated Pydantic model."""
    payload = _parse_json_payload(raw, context=context)
    try:
        return model_type.model_validate(payload)
    except ValidationError as exc:
        context_suffix = f" ({context})" if context else ""
        raise CommandParseError(
            detail=f"failed to validate command output{context_suffix}: {exc}",
            context=context,
        ) from exc


def parse_json_model_list(
    raw: str, *, model_type: type[ModelT], context: str | None = None
) -> list[ModelT]:
    """Parse a JSON array from command output into validated Pydantic models."""
    payload = _parse_json_payload(raw, context=context)
    context_suffix = f" ({context})" if context else ""
    if not isinstance(payload, list):
        raise CommandParseError(
            detail=f"failed to parse command output{context_suffix}: expected a JSON list",
            context=context,
        )
    models: list[ModelT] = []
    for index, item in enumerate(payload):
        try:
            models.append(model_type.model_validate(item))
        except ValidationError as exc:
            raise CommandParseError(
                detail=(
                    f"failed to validate command output{context_suffix}"
                    f" at index {index}: {exc}"
                ),
                context=context,
            ) from exc
    return models
