import subprocess
from importlib.metadata import (
    version as get_version,
)
from typing import (
    IO,
)

import click

from .errors import (
    ExpansionError,
    PreprocessError,
)
from .frontend import (
    ClangFrontend,
)
from .translation import (
    SYSTEM_INCLUDE_DIRS,
    ExpansionContext,
    HeaderExpander,
    _debug_print,
    get_header_name,
    resolve_header,
)

__version__ = get_version("incexpand")

__all__ = [
    "ExpansionContext",
    "HeaderExpander",
    "cli",
    "expand_file",
    "get_header_name",
    "maybe_expand",
    "resolve_header",
    "run_preprocessor",
]


def _make_expander(
    include_dirs: list[str] | None,
    extra_args: list[str] | None,
    system_include_dirs: tuple[str, ...] | None,
    use_default_includes: bool,
    debug: bool,
) -> HeaderExpander:
    return HeaderExpander(
        frontend=ClangFrontend(use_default_includes=use_default_includes),
        include_dirs=include_dirs or [],
        extra_args=extra_args or [],
        system_include_dirs=SYSTEM_INCLUDE_DIRS if system_include_dirs is None else system_include_dirs,
        debug=debug,
    )


def maybe_expand(
    line: str,
    include_dirs: list[str] | None = None,
    extra_args: list[str] | None = None,
    system_include_dirs: tuple[str, ...] | None = None,
    use_default_includes: bool = True,
    debug: bool = False,
) -> str:
    """Expand a single line if it is an ``#include`` directive.

    Each call is its own run: nothing is deduplicated against earlier calls.
    Use :class:`HeaderExpander` directly to share state between lines.

    Args:
        line: One line of D source.
        include_dirs: Directories searched for headers (and passed to clang as ``-I``).
        extra_args: Extra arguments passed to clang (e.g., ``["-DNDEBUG"]``).
        system_include_dirs: Fallback header search directories
            (default: ``("/usr/include",)``).
        use_default_includes: If True (default), add the system clang
            compiler's include directories when parsing.
        debug: Print debug info to stderr.

    Returns:
        The line unchanged, or the ``extern(C)`` block for the header.
    """
    expander = _make_expander(include_dirs, extra_args, system_include_dirs, use_default_includes, debug)
    return expander.maybe_expand(line)


def expand_file(
    path: str,
    include_dirs: list[str] | None = None,
    extra_args: list[str] | None = None,
    system_include_dirs: tuple[str, ...] | None = None,
    use_default_includes: bool = True,
    debug: bool = False,
) -> str:
    """Expand every ``#include`` directive of a D source file.

    All headers of the file share one run, so a declaration reachable from
    several headers is emitted once.

    Args:
        path: D source file with ``#include`` lines.
        include_dirs: Directories searched for headers (and passed to clang as ``-I``).
        extra_args: Extra arguments passed to clang (e.g., ``["-DNDEBUG"]``).
        system_include_dirs: Fallback header search directories
            (default: ``("/usr/include",)``).
        use_default_includes: If True (default), add the system clang
            compiler's include directories when parsing.
        debug: Print debug info to stderr.

    Returns:
        The expanded source text.
    """
    expander = _make_expander(include_dirs, extra_args, system_include_dirs, use_default_includes, debug)
    return expander.expand_file(path)


def run_preprocessor(text: str, extra_args: list[str] | None = None, debug: bool = False) -> str:
    """Run expanded text through the C preprocessor.

    This applies the ``#define`` lines that expansion copied from the
    headers to the rest of the file.

    :param text: Expanded source.
    :param extra_args: ``-D``/``-I`` options for the preprocessor.
    :raises PreprocessError: If clang is missing or exits with an error.
    """
    command = ["clang", "-E", "-P", "-x", "c", *(extra_args or []), "-"]
    if debug:
        _debug_print(f"Preprocessing: {' '.join(command)}")
    try:
        result = subprocess.run(command, input=text, capture_output=True, text=True, check=True)
    except FileNotFoundError as e:
        raise PreprocessError("clang not found; it is required for --preprocess") from e
    except subprocess.CalledProcessError as e:
        raise PreprocessError(f"Preprocessing failed:\n{e.stderr}") from e
    return result.stdout


CONTEXT_SETTINGS: dict[str, list[str]] = dict(help_option_names=["-h", "--help"])


@click.command(
    context_settings=CONTEXT_SETTINGS,
    help="""Expand C #include directives in a D source file into extern(C) declarations.

\b
Lines that are not #include directives are copied unchanged.
""",
)
@click.option("--version", "-v", is_flag=True, help="Print version and exit.")
@click.option(
    "--debug/--no-debug",
    default=False,
    help="Print debug info to stderr.",
)
@click.option(
    "--include-dir",
    "-I",
    multiple=True,
    metavar="<dir>",
    help="Add include search path.",
)
@click.option(
    "--define",
    "-D",
    "defines",
    multiple=True,
    metavar="<macro>",
    help="Define preprocessor macro.",
)
@click.option(
    "--system-include-dir",
    "-S",
    "system_include_dirs",
    multiple=True,
    metavar="<dir>",
    help="Fallback header search path (default: /usr/include). Can be specified multiple times.",
)
@click.option(
    "--cpp",
    "-x",
    is_flag=True,
    help="Parse headers as C++.",
)
@click.option(
    "--std",
    metavar="<std>",
    help="Language standard (e.g., c11, c++17).",
)
@click.option(
    "--clang-arg",
    multiple=True,
    metavar="<arg>",
    help="Pass argument to clang.",
)
@click.option(
    "--no-default-includes",
    is_flag=True,
    help="Disable system include auto-detection.",
)
@click.option(
    "--preprocess",
    is_flag=True,
    help="Run the expanded output through the C preprocessor (requires clang).",
)
@click.argument(
    "infile",
    type=click.Path(exists=True, dir_okay=False),
    required=False,
)
@click.argument(
    "outfile",
    type=click.File("w"),
    default="-",
)
def cli(
    version: bool,
    debug: bool,
    include_dir: tuple[str, ...],
    defines: tuple[str, ...],
    system_include_dirs: tuple[str, ...],
    cpp: bool,
    std: str | None,
    clang_arg: tuple[str, ...],
    no_default_includes: bool,
    preprocess: bool,
    infile: str | None,
    outfile: IO[str],
) -> None:
    if version:
        print(__version__)
        return

    if infile is None:
        click.echo("Error: Missing argument 'INFILE'.", err=True)
        raise SystemExit(2)

    # Build extra_args list from CLI options
    extra_args: list[str] = []
    for define in defines:
        extra_args.append(f"-D{define}")
    if cpp:
        extra_args.extend(["-x", "c++"])
    if std:
        extra_args.append(f"-std={std}")
    for arg in clang_arg:
        extra_args.append(arg)

    try:
        expanded = expand_file(
            infile,
            include_dirs=list(include_dir),
            extra_args=extra_args,
            system_include_dirs=system_include_dirs or None,
            use_default_includes=not no_default_includes,
            debug=debug,
        )
        if preprocess:
            cpp_args = [f"-D{define}" for define in defines] + [f"-I{directory}" for directory in include_dir]
            expanded = run_preprocessor(expanded, cpp_args, debug)
    except ExpansionError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from e

    outfile.write(expanded)
