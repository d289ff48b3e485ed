"""Orchestrates validator -> driver -> store for every segment change.

Concurrency model:

- a short admission lock covers validation plus reservation of the proposed
  segment, so two requests cannot both pass validation against the same
  snapshot;
- every link a segment touches has its own lock, taken in sorted order and
  held from staging until the driver reports applied/failed, so operations
  on disjoint links run concurrently;
- the locked section is shielded from caller cancellation, and its outcome
  is logged when the caller is gone.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime, timezone
from functools import partial
from typing import AsyncIterator, Awaitable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from ..models.interfaces import LinkSnapshot
from ..models.segments import SegmentKind, SegmentRecord
from ..models.status import Incident
from .config_store import ConfigStore
from .drivers.base import SegmentDriver
from .errors import (
    DependencyExists,
    InterfaceNotFound,
    RollbackFailure,
    SegmentNotFound,
    StoreFailure,
)
from .events import EventBus, ProgressEmitter
from .interface_discovery import InterfaceDiscovery
from .validator import Config, ConflictValidator, configs_view, dependents_of


logger = logging.getLogger(__name__)


def created_links(config: Config) -> List[str]:
    """Links the segment itself brings into existence."""
    if config.kind in (SegmentKind.VLAN.value, SegmentKind.BRIDGE.value):
        return [config.key]
    return []


def required_links(config: Config) -> List[str]:
    created = set(created_links(config))
    return [name for name in config.links() if name not in created]


def _report_detached(what: str, task: "asyncio.Task") -> None:
    # the caller was cancelled; nobody else will see the outcome
    if task.cancelled():
        return
    exc = task.exception()
    if exc is None:
        logger.info(f"{what} completed after its caller went away")
    else:
        logger.error(f"{what} failed after its caller went away: {exc}")


class Reconciler:
    def __init__(
        self,
        store: ConfigStore,
        discovery: InterfaceDiscovery,
        drivers: Mapping[SegmentKind, SegmentDriver],
        events: EventBus,
        validator: Optional[ConflictValidator] = None,
    ) -> None:
        self.store = store
        self.discovery = discovery
        self.drivers = dict(drivers)
        self.events = events
        self.validator = validator or ConflictValidator()
        self._admission = asyncio.Lock()
        self._link_locks: Dict[str, asyncio.Lock] = {}
        self._pending: Dict[SegmentKind, Dict[str, Config]] = {k: {} for k in SegmentKind}
        self._incidents: Dict[Tuple[str, str], Incident] = {}
        self._incident_state: Dict[Tuple[str, str], Tuple[Config, Dict[str, LinkSnapshot]]] = {}

    # -- public API -------------------------------------------------------------

    async def create(self, config: Config) -> Config:
        kind = SegmentKind(config.kind)
        key = config.key
        emit = self._emitter("apply", kind, key)

        existing = self.store.get(kind, key)
        if existing is not None and existing.config.model_dump() == config.model_dump():
            emit("applied", "already applied; nothing to do")
            return existing.config

        async with self._admission:
            emit("validating", "checking for conflicts")
            verdict = self.validator.validate(config, self._stored_view(), self.discovery.snapshot())
            if not verdict.ok:
                emit("failed", verdict.error.detail, level="error")
                logger.info(f"Rejected {kind.value} {key}: {verdict.error.detail}")
                verdict.raise_for_conflict()
            self._pending[kind][key] = config

        return await self._shielded(self._apply(kind, config, emit), f"apply of {kind.value} {key}")

    async def destroy(self, kind: SegmentKind, key: str) -> None:
        emit = self._emitter("teardown", kind, key)
        async with self._admission:
            record = self.store.get(kind, key)
            if record is None:
                if (kind.value, key) in self._incident_state:
                    config, prior = self._incident_state[(kind.value, key)]
                else:
                    raise SegmentNotFound(kind.value, key)
            else:
                config, prior = record.config, record.prior
            dependents = dependents_of(kind, key, self._stored_view())
            if dependents:
                emit("failed", f"referenced by {', '.join(dependents)}", level="error")
                raise DependencyExists(kind.value, key, dependents)

        await self._shielded(self._teardown(kind, config, prior, emit), f"teardown of {kind.value} {key}")

    async def startup(self) -> List[str]:
        """Flag stored segments whose links are missing. Nothing is re-run."""
        live = self.discovery.snapshot()
        degraded: List[str] = []
        total = 0
        for kind in SegmentKind:
            for record in self.store.list(kind):
                total += 1
                missing = [n for n in record.config.links() if n not in live]
                if missing:
                    degraded.append(f"{kind.value}:{record.key}")
                    logger.warning(
                        f"{kind.value} {record.key} is degraded: missing {', '.join(missing)}; "
                        "keeping it until the link returns or it is deleted"
                    )
        logger.info(f"Startup check: {total} stored segment(s), {len(degraded)} degraded")
        return degraded

    def incidents(self) -> List[Incident]:
        return list(self._incidents.values())

    def has_incident(self, kind: SegmentKind, key: str) -> bool:
        return (kind.value, key) in self._incidents

    # -- internals ----------------------------------------------------------------

    async def _apply(self, kind: SegmentKind, config: Config, emit: ProgressEmitter) -> Config:
        key = config.key
        driver = self.drivers[kind]
        try:
            async with self._locked(config.links()):
                live = self.discovery.snapshot()
                for name in required_links(config):
                    if name not in live:
                        emit("failed", f"{name} disappeared", level="error")
                        raise InterfaceNotFound(name, kind=kind.value, key=key)
                prior = {n: LinkSnapshot.of(live[n]) for n in config.links() if n in live}
                self._inherit_link_state(prior)

                try:
                    await driver.apply(config, prior, emit, shared=self._shared_links(kind, key))
                except RollbackFailure as exc:
                    self._record_incident(exc, config, prior)
                    raise

                record = SegmentRecord(kind=kind, key=key, config=config, prior=prior)
                try:
                    self.store.put(kind, key, record)
                except StoreFailure:
                    logger.error(f"Could not persist {kind.value} {key}; undoing the applied change")
                    emit("rolling-back", "store write failed; undoing", level="error")
                    await driver.teardown(
                        config, prior, strict=False, emit=emit, shared=self._shared_links(kind, key)
                    )
                    raise
                self._clear_incident(kind, key)
                return config
        finally:
            self._pending[kind].pop(key, None)

    async def _teardown(
        self,
        kind: SegmentKind,
        config: Config,
        prior: Dict[str, LinkSnapshot],
        emit: ProgressEmitter,
    ) -> None:
        key = config.key
        async with self._locked(config.links()):
            if self.store.get(kind, key) is None and (kind.value, key) not in self._incident_state:
                # a concurrent delete got here first
                raise SegmentNotFound(kind.value, key)
            live = self.discovery.snapshot()
            missing = [n for n in required_links(config) if n not in live]
            drifted = self.has_incident(kind, key)
            strict = not missing and not drifted
            if not strict:
                logger.warning(f"Removing {kind.value} {key} best-effort (missing: {missing}, drift: {drifted})")
            await self.drivers[kind].teardown(
                config, prior, strict=strict, emit=emit, shared=self._shared_links(kind, key)
            )
            self.store.delete(kind, key)
            self._clear_incident(kind, key)

    async def _shielded(self, coro: Awaitable, what: str):
        task = asyncio.ensure_future(coro)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            task.add_done_callback(partial(_report_detached, what))
            raise

    def _inherit_link_state(self, prior: Dict[str, LinkSnapshot]) -> None:
        """A link another segment brought up counts as down if it was down before that."""
        for records in self.store.snapshot().values():
            for record in records.values():
                for name, snap in record.prior.items():
                    if name in prior and not snap.up:
                        prior[name] = prior[name].model_copy(update={"up": False})

    def _shared_links(self, kind: SegmentKind, key: str) -> Set[str]:
        """Links that other stored segments still sit on."""
        shared: Set[str] = set()
        for other_kind, configs in configs_view(self.store.snapshot()).items():
            for other_key, other in configs.items():
                if (other_kind, other_key) != (kind, key):
                    shared.update(other.links())
        return shared

    @asynccontextmanager
    async def _locked(self, links: Iterable[str]) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for name in sorted(set(links)):
                lock = self._link_locks.setdefault(name, asyncio.Lock())
                await stack.enter_async_context(lock)
            yield

    def _stored_view(self) -> Dict[SegmentKind, Dict[str, Config]]:
        view = configs_view(self.store.snapshot())
        for kind, pending in self._pending.items():
            view.setdefault(kind, {}).update(pending)
        return view

    def _emitter(self, operation: str, kind: SegmentKind, key: str) -> ProgressEmitter:
        return self.events.emitter(uuid.uuid4().hex[:12], operation, kind.value, key)

    def _record_incident(self, exc: RollbackFailure, config: Config, prior: Dict[str, LinkSnapshot]) -> None:
        ident = (exc.kind, exc.key)
        self._incidents[ident] = Incident(
            kind=exc.kind,
            key=exc.key,
            step=exc.step,
            cause=exc.cause,
            rollback_errors=exc.rollback_errors,
            occurred_at=datetime.now(timezone.utc),
        )
        self._incident_state[ident] = (config, prior)

    def _clear_incident(self, kind: SegmentKind, key: str) -> None:
        self._incidents.pop((kind.value, key), None)
        self._incident_state.pop((kind.value, key), None)
