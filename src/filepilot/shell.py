"""Line-oriented interactive shell.

Single-threaded: every command returns immediately, background results are
printed from the orchestrator's event queue before and after each command.
Press Enter on an empty line to pick up new results.
"""
from __future__ import annotations

import cmd
import shlex
from pathlib import Path
from typing import IO

from .api.error_codes import FilePilotError
from .explorer import FileExplorer
from .orchestrator import (
    Event,
    Orchestrator,
    SearchFailed,
    SearchFinished,
    SearchPartial,
    ServerReady,
    ShareCompleted,
    ShareFailed,
)


def _human_size(size: int) -> str:
    value = float(size)
    for unit in ('B', 'KB', 'MB', 'GB'):
        if value < 1024 or unit == 'GB':
            return f'{value:.0f} {unit}' if unit == 'B' else f'{value:.1f} {unit}'
        value /= 1024
    return f'{value:.1f} TB'


class FilePilotShell(cmd.Cmd):
    intro = 'filepilot: type help for commands, quit to exit.'

    def __init__(
        self,
        orchestrator: Orchestrator,
        explorer: FileExplorer,
        profile: str | None = None,
        stdin: IO[str] | None = None,
        stdout: IO[str] | None = None,
    ):
        super().__init__(stdin=stdin, stdout=stdout)
        if stdin is not None:
            self.use_rawinput = False
        self.orchestrator = orchestrator
        self.explorer = explorer
        self.profile = profile or orchestrator.config.default_profile
        self._shares: list[ShareCompleted] = []
        self._update_prompt()

    def _update_prompt(self) -> None:
        self.prompt = f'{self.explorer.current_path} [{self.profile}]> '

    def _print(self, line: str = '') -> None:
        self.stdout.write(line + '\n')

    # ── Event rendering ──

    def drain_events(self, timeout: float | None = None) -> list[Event]:
        events = self.orchestrator.poll_events(timeout=timeout)
        for event in events:
            self._render(event)
        return events

    def _render(self, event: Event) -> None:
        if isinstance(event, ServerReady):
            self._print(f'share server listening on {event.base_url}')
        elif isinstance(event, ShareCompleted):
            self._shares.append(event)
            self._print(f'shared {event.path.name}: {event.url}')
        elif isinstance(event, ShareFailed):
            self._print(f'share failed ({event.error_code}): {event.message}')
        elif isinstance(event, SearchPartial):
            for match in event.matches:
                self._print(f'  {match.file.path}')
        elif isinstance(event, SearchFinished):
            outcome = event.outcome
            note = ' (partial)' if outcome.truncated else ''
            self._print(
                f'search {outcome.state.value}{note}: {len(outcome.matches)} matches, '
                f'{outcome.visited} entries in {outcome.elapsed:.2f}s'
            )
        elif isinstance(event, SearchFailed):
            self._print(f'search failed ({event.error_code}): {event.message}')

    def precmd(self, line: str) -> str:
        self.drain_events()
        return line

    def postcmd(self, stop: bool, line: str) -> bool:
        self.drain_events()
        self._update_prompt()
        return stop

    def emptyline(self) -> bool:
        return False

    def default(self, line: str) -> None:
        self._print(f'unknown command: {line.split()[0]} (try help)')

    # ── Commands ──

    def do_ls(self, arg: str) -> None:
        """ls: list the current directory"""
        files = self.explorer.files
        if not files:
            self._print('(empty)')
        for info in files:
            if info.is_directory:
                self._print(f'  {info.name}/')
            else:
                self._print(f'  {info.name}  {_human_size(info.size)}')

    def do_cd(self, arg: str) -> None:
        """cd DIR: enter a directory"""
        target = arg.strip() or '~'
        if self.explorer.navigate_to(target):
            return
        path = self.explorer.current_path / Path(target).expanduser()
        if path.is_dir():
            self._print(f'cannot open: {target}')
        else:
            self._print(f'not a directory: {target}')

    def do_up(self, arg: str) -> None:
        """up: go to the parent directory"""
        current = self.explorer.current_path
        if not self.explorer.go_up() and current.parent != current:
            self._print(f'cannot open: {current.parent}')

    def do_refresh(self, arg: str) -> None:
        """refresh: re-read the current directory"""
        try:
            self.explorer.refresh()
        except OSError as e:
            self._print(f'cannot read {self.explorer.current_path}: {e.strerror or e}')

    def do_share(self, arg: str) -> None:
        """share FILE: serve FILE on the local network and print its URL"""
        name = arg.strip()
        if not name:
            self._print('usage: share FILE')
            return
        path = self.explorer.current_path / name
        self.orchestrator.share(path)
        self._print(f'sharing {path.name}...')

    def do_search(self, arg: str) -> None:
        """search [-c] PATTERN: search below the current directory (-c also matches file contents)"""
        try:
            parts = shlex.split(arg)
        except ValueError as e:
            self._print(f'bad pattern: {e}')
            return
        match_contents = False
        if parts and parts[0] == '-c':
            match_contents = True
            parts = parts[1:]
        if not parts:
            self._print('usage: search [-c] PATTERN')
            return
        pattern = ' '.join(parts)
        try:
            run_id = self.orchestrator.run_search(
                pattern,
                self.explorer.current_path,
                profile=self.profile,
                match_contents=match_contents,
            )
        except FilePilotError as e:
            self._print(e.message)
            return
        self._print(f'search #{run_id} for {pattern!r} ({self.profile})')

    def do_profile(self, arg: str) -> None:
        """profile [NAME]: show or switch the search profile"""
        name = arg.strip()
        if not name:
            for profile_name, profile in sorted(self.orchestrator.config.profiles.items()):
                marker = '*' if profile_name == self.profile else ' '
                self._print(
                    f'{marker} {profile_name}: depth {profile.max_depth}, '
                    f'{profile.deadline_seconds:g}s, {profile.max_results} results'
                )
            return
        try:
            self.orchestrator.config.get_profile(name)
        except FilePilotError as e:
            self._print(e.message)
            return
        self.profile = name

    def do_shares(self, arg: str) -> None:
        """shares: list files shared in this session"""
        if not self._shares:
            self._print('nothing shared yet')
        for share in self._shares:
            self._print(f'  {share.path}  {share.url}')

    def do_quit(self, arg: str) -> bool:
        """quit: stop sharing and exit"""
        return True

    do_exit = do_quit

    def do_EOF(self, arg: str) -> bool:
        self._print()
        return True
