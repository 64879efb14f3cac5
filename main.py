"""Main entry point for climark."""

import argparse
import asyncio
import importlib.metadata
import sys
from typing import Any, Dict, List, Optional

import yaml

from config import Config, ensure_config
from program import (
    ClimarkError,
    ProcessEnvironment,
    Program,
    ProgramLookupError,
    check_expectations,
    load_repositories,
    run_program,
)
from render import Renderer, RenderOptions, WatchCoordinator
from utils import get_logger, setup_logger, terminal_ui
from utils.runtime import default_repositories, ensure_runtime_dirs

logger = get_logger(__name__)

EXIT_INTERRUPTED = 130


def parse_set_values(items: Optional[List[str]]) -> Dict[str, Any]:
    """Parse KEY=VALUE pairs, decoding values with YAML scalar rules."""
    values: Dict[str, Any] = {}
    for item in items or []:
        key, sep, raw = item.partition("=")
        if not sep or not key.strip():
            raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got '{item}'")
        try:
            values[key.strip()] = yaml.safe_load(raw) if raw.strip() else raw
        except yaml.YAMLError:
            values[key.strip()] = raw
    return values


def parse_delimiters(value: str) -> List[str]:
    return [part.strip() for part in value.split(",")]


def _repositories(args: argparse.Namespace) -> List[str]:
    if args.repository:
        return args.repository
    return list(Config.REPOSITORIES) or default_repositories()


async def _load(args: argparse.Namespace) -> Dict[str, Program]:
    return await load_repositories(_repositories(args))


def _lookup(programs: Dict[str, Program], name: str) -> Program:
    program = programs.get(name)
    if program is None:
        raise ProgramLookupError(name, list(programs))
    return program


async def cmd_render(args: argparse.Namespace) -> int:
    options = RenderOptions.from_config(
        with_go_template=args.with_go_template,
        with_yaml_markers=args.with_yaml_markers,
        delimiters=args.delimiters,
        allow_program_creation=args.allow_program_creation or None,
        masks=args.glob,
        jobs=args.jobs,
        verbose=not args.quiet,
    )
    options.programs = await _load(args)
    renderer = Renderer(options)

    if args.watch:
        coordinator = WatchCoordinator(
            renderer,
            args.files,
            args.output_directory,
            repositories=_repositories(args),
            interval=Config.WATCH_INTERVAL,
        )
        try:
            await coordinator.run()
        except asyncio.CancelledError:
            logger.info("Watch cancelled")
            terminal_ui.print_warning("Interrupted")
            return EXIT_INTERRUPTED
        return 0

    written = await renderer.render_paths(
        args.files,
        output_directory=args.output_directory,
        output_file=args.output_file,
    )
    terminal_ui.print_info(f"{len(written)} file(s) rendered")
    return 0


async def cmd_run(args: argparse.Namespace) -> int:
    program = _lookup(await _load(args), args.name)
    result = await run_program(
        program,
        parse_set_values(args.set),
        stdin=args.stdin,
        sink=sys.stdout,
        environment=ProcessEnvironment.from_os(),
        timeout=Config.program_timeout(),
    )
    return result.returncode


async def cmd_test(args: argparse.Namespace) -> int:
    programs = await _load(args)
    names = args.names or sorted(programs)
    rows = []
    failed = 0
    for name in names:
        program = _lookup(programs, name)
        result = await run_program(program, timeout=Config.program_timeout())
        problems = [m.describe() for m in check_expectations(program, result)]
        failed += bool(problems)
        rows.append((name, problems))
    terminal_ui.print_test_results(rows, title=f"{len(names) - failed}/{len(names)} passed")
    return 1 if failed else 0


async def cmd_list(args: argparse.Namespace) -> int:
    terminal_ui.print_programs((await _load(args)).values())
    return 0


async def cmd_show(args: argparse.Namespace) -> int:
    program = _lookup(await _load(args), args.name)
    terminal_ui.print_yaml(yaml.safe_dump(program.to_dict(), sort_keys=False))
    return 0


def _add_repository_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--repository",
        "-r",
        action="append",
        help="Directory of program definitions (repeatable, default: REPOSITORIES config)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="climark",
        description="Render documents by expanding embedded command line program invocations",
    )

    try:
        version = importlib.metadata.version("climark")
    except importlib.metadata.PackageNotFoundError:
        version = "dev"
    parser.add_argument("--version", "-V", action="version", version=f"climark {version}")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging to ~/.climark/logs/",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="Render files or directories")
    render.add_argument("files", nargs="+", help="Files or directories to render")
    _add_repository_flag(render)
    output = render.add_mutually_exclusive_group()
    output.add_argument("--output-directory", "-o", default=".", help="Output directory")
    output.add_argument("--output-file", "-f", help="Output file (single input only)")
    render.add_argument("--watch", "-w", action="store_true", help="Watch for changes")
    render.add_argument(
        "--glob", action="append", help="Doublestar file glob (repeatable, default: **/*.tmpl.md)"
    )
    render.add_argument(
        "--with-go-template",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Expand template directives",
    )
    render.add_argument(
        "--with-yaml-markers",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Expand ```climark fenced directives",
    )
    render.add_argument(
        "--delimiters",
        type=parse_delimiters,
        help="Left and right template delimiter, separated by ','",
    )
    render.add_argument(
        "--allow-program-creation",
        action="store_true",
        help="Allow directives to define inline programs",
    )
    render.add_argument("--jobs", "-j", type=int, help="Files rendered concurrently")
    render.add_argument("--quiet", "-q", action="store_true", help="Quiet mode")
    render.set_defaults(handler=cmd_render)

    run = sub.add_parser("run", help="Run a single program")
    run.add_argument("name", help="Program name")
    _add_repository_flag(run)
    run.add_argument("--set", action="append", metavar="KEY=VALUE", help="Parameter value")
    run.add_argument("--stdin", help="Text passed on standard input")
    run.set_defaults(handler=cmd_run)

    test = sub.add_parser("test", help="Check programs against their golden expectations")
    test.add_argument("names", nargs="*", help="Programs to test (default: all)")
    _add_repository_flag(test)
    test.set_defaults(handler=cmd_test)

    list_ = sub.add_parser("list", help="List loaded programs")
    _add_repository_flag(list_)
    list_.set_defaults(handler=cmd_list)

    show = sub.add_parser("show", help="Print a program definition")
    show.add_argument("name", help="Program name")
    _add_repository_flag(show)
    show.set_defaults(handler=cmd_show)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    ensure_config()
    ensure_runtime_dirs(create_logs=args.verbose)
    if args.verbose:
        setup_logger()
    terminal_ui.set_quiet(getattr(args, "quiet", False))

    try:
        Config.validate()
    except ValueError as e:
        terminal_ui.print_error(str(e), title="Configuration Error")
        return 1

    try:
        return asyncio.run(args.handler(args))
    except KeyboardInterrupt:
        terminal_ui.print_warning("Interrupted")
        return EXIT_INTERRUPTED
    except argparse.ArgumentTypeError as e:
        terminal_ui.print_error(str(e), title="Usage Error")
        return 2
    except ClimarkError as e:
        logger.error(f"{args.command} failed: {e}")
        terminal_ui.print_error(str(e), title=f"{args.command.capitalize()} Error")
        return 1


if __name__ == "__main__":
    sys.exit(main())
