"""Command-line entry point.

Usage:
    filepilot [-p DIR]                     interactive shell
    filepilot -p DIR -s PATTERN            one-shot search, prints paths
    filepilot --share FILE                 share one file until Ctrl-C
"""
from __future__ import annotations

import argparse
import sys
import threading
from pathlib import Path

from .api.config import FilePilotConfig
from .api.error_codes import FilePilotError
from .api.share_server import ShareServer
from .explorer import FileExplorer
from .observability import configure_logging, get_logger
from .orchestrator import Orchestrator
from .search import SearchEngine, SearchQuery
from .shell import FilePilotShell

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='filepilot',
        description='Browse local files, search them, and share them on the local network.',
    )
    parser.add_argument('-p', '--path', default='.', help='Start directory (default: .)')
    parser.add_argument('-s', '--search', metavar='PATTERN', help='Search once and print matching paths')
    parser.add_argument('--contents', action='store_true', help='With --search, also match file contents')
    parser.add_argument('--profile', help='Search profile (default: from config)')
    parser.add_argument('--share', metavar='FILE', help='Share FILE and serve until interrupted')
    parser.add_argument('--config', metavar='FILE', help='JSON config file')
    return parser.parse_args(argv)


def run_search(config: FilePilotConfig, args: argparse.Namespace) -> int:
    engine = SearchEngine(ignore_patterns=config.ignore_patterns)
    query = SearchQuery(
        root=Path(args.path),
        pattern=args.search,
        profile=config.get_profile(args.profile),
        match_contents=args.contents,
    )
    outcome = engine.search(query)
    for match in outcome.matches:
        print(match.file.path)
    if outcome.truncated:
        print(
            f'search {outcome.state.value}: results may be incomplete '
            f'({outcome.visited} entries in {outcome.elapsed:.1f}s)',
            file=sys.stderr,
        )
    return 0


def run_share(config: FilePilotConfig, args: argparse.Namespace) -> int:
    server = ShareServer(config)
    try:
        result = server.share(args.share)
        print(result.url)
        print('Serving until interrupted (Ctrl-C).', file=sys.stderr)
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
    return 0


def run_shell(config: FilePilotConfig, args: argparse.Namespace) -> int:
    explorer = FileExplorer(args.path)
    with Orchestrator(config) as orchestrator:
        shell = FilePilotShell(orchestrator, explorer, profile=args.profile)
        try:
            shell.cmdloop()
        except KeyboardInterrupt:
            print()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(stream=sys.stderr)

    try:
        config = FilePilotConfig.load(args.config)
        config.validate()
        if args.profile:
            config.get_profile(args.profile)
        if args.search is not None:
            return run_search(config, args)
        if args.share:
            return run_share(config, args)
        return run_shell(config, args)
    except FilePilotError as e:
        print(f'error: {e.message}', file=sys.stderr)
        return 1
    except OSError as e:
        print(f'error: {e}', file=sys.stderr)
        return 1


if __name__ == '__main__':
    raise SystemExit(main())
