"""Shared apply/teardown machinery for segment drivers.

A driver turns one segment into rendered daemon files plus an ordered list
of steps. ``apply`` walks the state machine::

    pending -> validating -> writing-config -> activating -> applied
                                   (any failure) -> rolling-back -> failed

Only ``activating`` touches the host. Each completed step carries its own
undo, so rollback replays undos in reverse and restores any file that was
replaced.
"""
from __future__ import annotations

import asyncio
import logging
import os
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set

from ...models.interfaces import LinkSnapshot
from ...models.segments import SegmentKind
from ..errors import DriverFailure, RollbackFailure
from ..runner import CommandError, CommandRunner


logger = logging.getLogger(__name__)

Command = List[str]
Emit = Callable[..., None]


class ApplyState(str, Enum):
    PENDING = "pending"
    VALIDATING = "validating"
    WRITING_CONFIG = "writing-config"
    ACTIVATING = "activating"
    APPLIED = "applied"
    ROLLING_BACK = "rolling-back"
    FAILED = "failed"
    TEARING_DOWN = "tearing-down"
    REMOVED = "removed"


@dataclass
class Step:
    name: str
    command: Optional[Command] = None
    install: Optional[str] = None  # target path of a rendered file
    undo: List[Command] = field(default_factory=list)
    teardown: Optional[List[Command]] = None  # None: same as undo
    tolerate: bool = False
    link: Optional[str] = None  # set on link-up steps

    def teardown_commands(self) -> List[Command]:
        return self.undo if self.teardown is None else self.teardown


@dataclass
class StagedFile:
    target: str
    staged: str
    existed: bool = False
    backup: bytes = b""


@dataclass
class ApplyOutcome:
    kind: str
    key: str
    state: ApplyState
    steps: List[str] = field(default_factory=list)


@dataclass
class _Progress:
    files: Dict[str, StagedFile]
    shared: Set[str] = field(default_factory=set)
    step: str = ApplyState.ACTIVATING.value
    done: List[Step] = field(default_factory=list)


@dataclass
class DriverPaths:
    state_dir: str

    def conf(self, name: str) -> str:
        return os.path.join(self.state_dir, "conf", name)

    def pidfile(self, name: str) -> str:
        return os.path.join(self.state_dir, "run", f"{name}.pid")

    def logfile(self, name: str) -> str:
        return os.path.join(self.state_dir, "log", f"{name}.log")

    def staging(self, kind: str, key: str) -> str:
        return os.path.join(self.state_dir, "staging", kind, key)

    def ensure(self) -> "DriverPaths":
        for sub in ("conf", "run", "log", "staging"):
            os.makedirs(os.path.join(self.state_dir, sub), exist_ok=True)
        return self


def _noop(*args, **kwargs) -> None:
    return None


def link_up(name: str, prior: Dict[str, LinkSnapshot]) -> Step:
    """Bring a link up; undo puts it back down only if it was down before."""
    snap = prior.get(name)
    undo = [["ip", "link", "set", "dev", name, "down"]] if snap is not None and not snap.up else []
    return Step(f"link-up {name}", ["ip", "link", "set", "dev", name, "up"], undo=undo, link=name)


class SegmentDriver(ABC):
    kind: SegmentKind

    def __init__(self, runner: CommandRunner, paths: DriverPaths, activation_timeout: float = 30.0) -> None:
        self.runner = runner
        self.paths = paths
        self.activation_timeout = activation_timeout

    @abstractmethod
    def render(self, config) -> Dict[str, str]:
        """Daemon files for ``config``: target path -> content."""

    @abstractmethod
    def plan(self, config, prior: Dict[str, LinkSnapshot]) -> List[Step]:
        """Ordered activation steps for ``config``."""

    async def apply(
        self,
        config,
        prior: Dict[str, LinkSnapshot],
        emit: Emit = _noop,
        shared: Iterable[str] = (),
    ) -> ApplyOutcome:
        kind, key = self.kind.value, config.key
        emit(ApplyState.PENDING.value, f"apply {kind} {key}")

        emit(ApplyState.VALIDATING.value, "building plan")
        try:
            files = self.render(config)
            steps = self.plan(config, prior)
        except ValueError as exc:
            emit(ApplyState.FAILED.value, str(exc), level="error")
            raise DriverFailure(kind, key, ApplyState.VALIDATING.value, str(exc)) from exc

        emit(ApplyState.WRITING_CONFIG.value, f"staging {len(files)} file(s)")
        try:
            staged = self._stage(key, files)
        except OSError as exc:
            self._discard_staging(key)
            emit(ApplyState.FAILED.value, str(exc), level="error")
            raise DriverFailure(kind, key, ApplyState.WRITING_CONFIG.value, str(exc)) from exc

        emit(ApplyState.ACTIVATING.value, f"running {len(steps)} step(s)")
        progress = _Progress(files=staged, shared=set(shared))
        try:
            await asyncio.wait_for(self._activate(steps, progress, emit), self.activation_timeout)
        except asyncio.TimeoutError:
            await self._rollback(config, progress, f"timed out after {self.activation_timeout:.0f}s", emit)
        except (CommandError, OSError) as exc:
            await self._rollback(config, progress, str(exc), emit)
        finally:
            self._discard_staging(key)

        emit(ApplyState.APPLIED.value, f"{kind} {key} applied")
        logger.info(f"Applied {kind} {key} ({len(progress.done)} steps)")
        return ApplyOutcome(kind, key, ApplyState.APPLIED, [s.name for s in progress.done])

    async def teardown(
        self,
        config,
        prior: Dict[str, LinkSnapshot],
        strict: bool = True,
        emit: Emit = _noop,
        shared: Iterable[str] = (),
    ) -> None:
        """Undo a stored segment. Links in ``shared`` are still used elsewhere and stay up."""
        kind, key = self.kind.value, config.key
        shared = set(shared)
        emit(ApplyState.TEARING_DOWN.value, f"teardown {kind} {key}")
        errors: List[str] = []
        for step in reversed(self.plan(config, prior)):
            if step.install:
                try:
                    os.remove(step.install)
                except FileNotFoundError:
                    pass
                except OSError as exc:
                    errors.append(f"{step.name}: {exc}")
                continue
            if step.link in shared:
                emit(ApplyState.TEARING_DOWN.value, f"{step.link} still in use; left up", step=step.name)
                continue
            for cmd in step.teardown_commands():
                try:
                    await self.runner.run(cmd)
                    emit(ApplyState.TEARING_DOWN.value, " ".join(cmd), step=step.name)
                except CommandError as exc:
                    if exc.is_absent:
                        emit(ApplyState.TEARING_DOWN.value, f"already gone: {' '.join(cmd)}", step=step.name)
                    elif strict:
                        errors.append(f"{step.name}: {exc}")
                    else:
                        emit(ApplyState.TEARING_DOWN.value, str(exc), level="warning", step=step.name)
        if errors:
            cause = "; ".join(errors)
            emit(ApplyState.FAILED.value, cause, level="error")
            raise DriverFailure(kind, key, ApplyState.TEARING_DOWN.value, cause)
        emit(ApplyState.REMOVED.value, f"{kind} {key} removed")
        logger.info(f"Removed {kind} {key}")

    # -- internals ------------------------------------------------------------

    async def _activate(self, steps: List[Step], progress: _Progress, emit: Emit) -> None:
        for step in steps:
            progress.step = step.name
            if step.install:
                self._install(progress.files[step.install])
                progress.done.append(step)
                emit(ApplyState.ACTIVATING.value, f"installed {step.install}", step=step.name)
                continue
            try:
                await self.runner.run(step.command)
            except CommandError as exc:
                if not step.tolerate:
                    raise
                emit(ApplyState.ACTIVATING.value, f"ignored: {exc}", level="warning", step=step.name)
                continue
            progress.done.append(step)
            emit(ApplyState.ACTIVATING.value, " ".join(step.command), step=step.name)

    async def _rollback(self, config, progress: _Progress, cause: str, emit: Emit) -> None:
        kind, key = self.kind.value, config.key
        logger.warning(f"{kind} {key}: step '{progress.step}' failed ({cause}); rolling back")
        emit(ApplyState.ROLLING_BACK.value, cause, level="warning", step=progress.step)
        errors: List[str] = []
        for step in reversed(progress.done):
            if step.install:
                try:
                    self._restore(progress.files[step.install])
                except OSError as exc:
                    errors.append(f"{step.name}: {exc}")
                continue
            if step.link in progress.shared:
                continue
            for cmd in step.undo:
                try:
                    await self.runner.run(cmd)
                except CommandError as exc:
                    if not exc.is_absent:
                        errors.append(f"{step.name}: {exc}")
        if errors:
            logger.critical(f"{kind} {key}: rollback incomplete, host state has drifted: {errors}")
            emit(ApplyState.FAILED.value, "rollback incomplete", level="critical", step=progress.step)
            raise RollbackFailure(kind, key, progress.step, cause, errors)
        emit(ApplyState.FAILED.value, cause, level="error", step=progress.step)
        raise DriverFailure(kind, key, progress.step, cause)

    def _stage(self, key: str, files: Dict[str, str]) -> Dict[str, StagedFile]:
        directory = self.paths.staging(self.kind.value, key)
        os.makedirs(directory, exist_ok=True)
        staged: Dict[str, StagedFile] = {}
        for target, content in files.items():
            path = os.path.join(directory, os.path.basename(target))
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
            os.chmod(path, 0o600)
            staged[target] = StagedFile(target=target, staged=path)
        return staged

    def _discard_staging(self, key: str) -> None:
        shutil.rmtree(self.paths.staging(self.kind.value, key), ignore_errors=True)

    @staticmethod
    def _install(f: StagedFile) -> None:
        if os.path.exists(f.target):
            with open(f.target, "rb") as fh:
                f.backup = fh.read()
            f.existed = True
        os.makedirs(os.path.dirname(f.target), exist_ok=True)
        # staging and target share the state dir, so this is a rename
        shutil.move(f.staged, f.target)

    @staticmethod
    def _restore(f: StagedFile) -> None:
        if not f.existed:
            try:
                os.remove(f.target)
            except FileNotFoundError:
                pass
            return
        tmp = f.target + ".restore"
        with open(tmp, "wb") as fh:
            fh.write(f.backup)
        os.replace(tmp, f.target)
