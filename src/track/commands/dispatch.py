"""Implementation for the ``track dispatch`` command."""

from pathlib import Path

from ..dispatch import DispatchStepError, DispatchStreams, run_dispatch
from ..config import DispatchDefaults
from ..exec import SubprocessCommandRunner
from ..hooks import ShellHookRunner
from ..io import die
from ..models import DispatchOptions
from .common import load_config_or_die, open_store, require_gh, require_issue_id


def build_options(args: object, defaults: DispatchDefaults) -> DispatchOptions:
    """Merge command-line flags over configured dispatch defaults.

    Args:
        args: Parsed arguments with ``runner``, ``mode``, ``base``,
            ``merge_method`` and ``no_merge`` attributes.
        defaults: Dispatch defaults from the user configuration.

    Returns:
        Validated dispatch options.
    """
    return DispatchOptions(
        runner=getattr(args, "runner", None) or defaults.runner,
        mode=getattr(args, "mode", None) or "execution",
        base=getattr(args, "base", None) or defaults.base,
        merge_method=getattr(args, "merge_method", None) or defaults.merge_method,
        no_merge=bool(getattr(args, "no_merge", False)),
    )


def dispatch_issue(args: object) -> None:
    """Run the dispatch pipeline for one issue from the current directory."""
    issue_id = require_issue_id(getattr(args, "issue_id", "") or "")
    config = load_config_or_die()
    options = build_options(args, config.dispatch)
    require_gh()
    with open_store() as store:
        try:
            run_dispatch(
                issue_id,
                cwd=Path.cwd(),
                store=store,
                hooks=ShellHookRunner(store),
                runner=SubprocessCommandRunner(),
                options=options,
                streams=DispatchStreams(),
            )
        except DispatchStepError as exc:
            die(str(exc))
