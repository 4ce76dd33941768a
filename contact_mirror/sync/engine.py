"""
Sync orchestrator for mirroring contacts across accounts.

Drives one sync run through an explicit state machine:

    IDLE -> FETCHING -> ANALYZING -> DIRECT_SAVE ------> MERGING -> SAVING -> IDLE
                                  \\-> AWAITING_APPROVAL -/
                                         (cancel -> IDLE)

Any failure moves the run to FAILED, discards the pending run state and
returns to IDLE before the error is raised to the caller. The orchestrator
never retries; a failed run is started again from IDLE.

The approval pause is a state, not a blocking call: begin_sync() returns
while the run is AWAITING_APPROVAL, and approve() or cancel() resumes it.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from contact_mirror.auth.gate import (
    AuthorizationGate,
    AuthorizationStatus,
    StaticAuthorizationGate,
)
from contact_mirror.store.base import Account, AccountStore
from contact_mirror.sync.cluster import ClusteringStrategy, EmailGraphClusterer
from contact_mirror.sync.contact import CONTACT_FIELDS, ContactRecord, GoldenContact
from contact_mirror.sync.merge import ContactMerger

if TYPE_CHECKING:
    from contact_mirror.backup.manager import BackupManager

logger = logging.getLogger(__name__)

# Default number of accounts fetched or saved in parallel
DEFAULT_MAX_WORKERS = 4

# Minimum number of selected accounts for a sync run
MIN_ACCOUNTS = 2


class SyncState(str, Enum):
    """States of a sync run."""

    IDLE = "idle"
    FETCHING = "fetching"
    ANALYZING = "analyzing"
    DIRECT_SAVE = "direct_save"
    AWAITING_APPROVAL = "awaiting_approval"
    MERGING = "merging"
    SAVING = "saving"
    FAILED = "failed"


class SaveMode(str, Enum):
    """How the final record set is written to each account."""

    # Insert the final set, then delete the records seen at fetch time
    REPLACE = "replace"
    # Insert the final set next to the existing records
    APPEND = "append"


class SyncError(Exception):
    """Base class for sync run failures."""

    pass


class SyncValidationError(SyncError):
    """Raised when a run is started with an invalid account selection."""

    pass


class SyncPermissionError(SyncError):
    """Raised when contact access has not been granted."""

    pass


class SyncStateError(SyncError):
    """Raised when an operation is not allowed in the current state."""

    pass


class FetchError(SyncError):
    """Raised when fetching records from an account fails."""

    def __init__(self, message: str, account_id: Optional[str] = None):
        super().__init__(message)
        self.account_id = account_id


class SaveError(SyncError):
    """
    Raised when writing the final record set fails.

    Attributes:
        failed_accounts: Error message per account that failed
        written_accounts: Accounts that received every insert
    """

    def __init__(
        self,
        message: str,
        failed_accounts: Optional[dict[str, str]] = None,
        written_accounts: Optional[list[str]] = None,
    ):
        super().__init__(message)
        self.failed_accounts = failed_accounts or {}
        self.written_accounts = written_accounts or []


class SyncCancelledError(SyncError):
    """Raised when a run is cancelled while fetching, merging or saving."""

    pass


@dataclass(frozen=True)
class SyncProgress:
    """Read-only snapshot of the orchestrator for presentation layers."""

    state: SyncState
    message: str = ""
    account_ids: tuple[str, ...] = ()
    pending_clusters: int = 0
    last_error: Optional[str] = None

    @property
    def is_busy(self) -> bool:
        """True while a run is fetching, analyzing, merging or saving."""
        return self.state not in (
            SyncState.IDLE,
            SyncState.AWAITING_APPROVAL,
            SyncState.FAILED,
        )


@dataclass
class SyncStats:
    """Counts collected during one sync run."""

    fetched: dict[str, int] = field(default_factory=dict)
    inserted: dict[str, int] = field(default_factory=dict)
    deleted: dict[str, int] = field(default_factory=dict)
    clusters_found: int = 0
    duplicates_merged: int = 0
    safe_records: int = 0
    final_records: int = 0

    @property
    def total_fetched(self) -> int:
        return sum(self.fetched.values())

    @property
    def total_inserted(self) -> int:
        return sum(self.inserted.values())

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())


@dataclass
class SyncResult:
    """
    Outcome of begin_sync() or approve().

    Attributes:
        account_ids: Selected accounts, in selection order
        clusters: Duplicate clusters found by the analysis
        safe: Records that were not part of any cluster
        golden: Final records written to every account (empty until saved)
        awaiting_approval: True when the run paused for approval
        completed: True when every account was written
        backup_file: Snapshot written before saving, if any
        stats: Counters for the run
    """

    account_ids: list[str] = field(default_factory=list)
    clusters: list[list[ContactRecord]] = field(default_factory=list)
    safe: list[ContactRecord] = field(default_factory=list)
    golden: list[GoldenContact] = field(default_factory=list)
    awaiting_approval: bool = False
    completed: bool = False
    backup_file: Optional[Path] = None
    stats: SyncStats = field(default_factory=SyncStats)

    def summary(self, account_labels: Optional[dict[str, str]] = None) -> str:
        """
        Generate a human-readable summary of the run.

        Args:
            account_labels: Display names keyed by account id

        Returns:
            Formatted multi-line summary
        """
        labels = account_labels or {}
        lines = ["Sync Summary:"]
        for account_id in self.account_ids:
            label = labels.get(account_id, account_id)
            lines.append(
                f"  {label}: {self.stats.fetched.get(account_id, 0)} contacts fetched"
            )
        lines.extend(
            [
                "",
                f"  Duplicate groups: {self.stats.clusters_found}",
                f"  Records in duplicate groups: {self.stats.duplicates_merged}",
                f"  Records without duplicates: {self.stats.safe_records}",
            ]
        )

        if self.awaiting_approval:
            lines.append("")
            lines.append("Waiting for merge approval. Nothing has been saved yet.")
        elif self.completed:
            lines.append(f"  Final contacts per account: {self.stats.final_records}")
            lines.append("")
            lines.append("Changes applied:")
            for account_id in self.account_ids:
                label = labels.get(account_id, account_id)
                lines.append(
                    f"  {label}: {self.stats.inserted.get(account_id, 0)} created, "
                    f"{self.stats.deleted.get(account_id, 0)} removed"
                )
        elif self.golden:
            lines.append(f"  Contacts per account after sync: {self.stats.final_records}")
        return "\n".join(lines)


@dataclass
class _PendingRun:
    account_ids: list[str]
    snapshot: dict[str, list[ContactRecord]]
    result: SyncResult


class SyncOrchestrator:
    """
    Runs sync runs over an account store.

    Only one run can be active at a time. Per-account fetches and saves run
    in a thread pool; clustering starts only when every fetch has finished,
    and a run is reported complete only when every save has finished.

    Usage:
        orchestrator = SyncOrchestrator(store)

        result = orchestrator.begin_sync(["work", "personal"])
        if result.awaiting_approval:
            for cluster in orchestrator.pending_clusters:
                show(cluster)
            result = orchestrator.approve()  # or orchestrator.cancel()

        print(result.summary())
    """

    def __init__(
        self,
        store: AccountStore,
        gate: Optional[AuthorizationGate] = None,
        clusterer: Optional[ClusteringStrategy] = None,
        merger: Optional[ContactMerger] = None,
        save_mode: SaveMode = SaveMode.REPLACE,
        max_workers: int = DEFAULT_MAX_WORKERS,
        operation_timeout: Optional[float] = None,
        backup_manager: Optional["BackupManager"] = None,
        on_progress: Optional[Callable[[SyncProgress], None]] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Account store to read from and write to
            gate: Authorization gate (default: always authorized)
            clusterer: Clustering strategy (default: EmailGraphClusterer)
            merger: Merge engine (default: ContactMerger())
            save_mode: REPLACE or APPEND
            max_workers: Accounts processed in parallel
            operation_timeout: Seconds to wait for all fetches (or all saves)
                               before failing the run; None waits forever
            backup_manager: Writes a snapshot of the fetched records before
                            anything is saved
            on_progress: Called with a SyncProgress on every state change
        """
        self.store = store
        self.gate = gate or StaticAuthorizationGate()
        self.clusterer = clusterer or EmailGraphClusterer()
        self.merger = merger or ContactMerger()
        self.save_mode = SaveMode(save_mode)
        self.max_workers = max(1, max_workers)
        self.operation_timeout = operation_timeout
        self.backup_manager = backup_manager
        self.on_progress = on_progress

        self._lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._state = SyncState.IDLE
        self._message = ""
        self._account_ids: tuple[str, ...] = ()
        self._pending: Optional[_PendingRun] = None
        self._last_error: Optional[str] = None

    # Read-only views -------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def progress(self) -> SyncProgress:
        with self._lock:
            return self._snapshot_locked()

    @property
    def pending_clusters(self) -> tuple[tuple[ContactRecord, ...], ...]:
        """Clusters awaiting approval (empty unless AWAITING_APPROVAL)."""
        with self._lock:
            if self._pending is None:
                return ()
            return tuple(tuple(c) for c in self._pending.result.clusters)

    def list_accounts(self) -> list[Account]:
        """Return the store's accounts."""
        return self.store.list_accounts()

    # Run control -----------------------------------------------------------------

    def begin_sync(self, account_ids: Iterable[str]) -> SyncResult:
        """
        Start a sync run over the selected accounts.

        Fetches and analyzes every selected account. Without duplicates the
        run saves immediately and completes; with duplicates it pauses in
        AWAITING_APPROVAL and returns a result with awaiting_approval=True.

        Args:
            account_ids: Ids of the selected accounts (duplicates ignored)

        Returns:
            SyncResult of the completed or paused run

        Raises:
            SyncStateError: If a run is already active
            SyncPermissionError: If contact access is not authorized
            SyncValidationError: If fewer than two accounts are selected
            FetchError: If any account cannot be read
            SaveError: If any account cannot be written
            SyncCancelledError: If cancel() was called mid-run
        """
        pending = self._fetch_and_analyze(account_ids)
        result = pending.result

        if not result.clusters:
            self._transition(
                SyncState.DIRECT_SAVE, "No duplicates found. Saving contacts…"
            )
            self._transition(SyncState.MERGING, "Merging duplicates…")
            return self._merge_and_save(pending)

        count = len(result.clusters)
        with self._lock:
            self._pending = pending
            progress = self._set_state_locked(
                SyncState.AWAITING_APPROVAL,
                f"Found {count} duplicate group{'' if count == 1 else 's'}. "
                "Review and approve to continue.",
            )
        self._notify(progress)

        result.awaiting_approval = True
        return result

    def preview(self, account_ids: Iterable[str]) -> SyncResult:
        """
        Fetch, analyze and merge without writing anything.

        The run returns to IDLE afterwards; result.golden holds the records
        a real run would write to every account.

        Raises:
            The same errors as begin_sync(), except SaveError
        """
        pending = self._fetch_and_analyze(account_ids)
        result = pending.result
        try:
            self._transition(SyncState.MERGING, "Merging duplicates (preview)…")
            result.golden = self._merge(result)
        except Exception as e:
            self._fail(e)
            raise

        self._transition(SyncState.IDLE, "Preview complete. Nothing was saved.")
        return result

    def approve(self) -> SyncResult:
        """
        Approve the pending clusters, then merge and save.

        Raises:
            SyncStateError: If no run is awaiting approval
            SyncPermissionError: If access was revoked since the run started
            SaveError: If any account cannot be written
        """
        denied: Optional[SyncPermissionError] = None
        with self._lock:
            if self._state != SyncState.AWAITING_APPROVAL or self._pending is None:
                raise SyncStateError("No merge is awaiting approval")
            pending = self._pending
            try:
                self._check_authorization()
            except SyncPermissionError as e:
                denied = e
            else:
                # From here on cancel() only flags the run
                self._cancel_event.clear()
                progress = self._set_state_locked(
                    SyncState.MERGING, "Merging duplicates…"
                )

        if denied is not None:
            self._fail(denied)
            raise denied

        self._notify(progress)
        pending.result.awaiting_approval = False
        return self._merge_and_save(pending)

    def cancel(self) -> bool:
        """
        Cancel the current run.

        While awaiting approval the pending clusters are discarded and the
        orchestrator returns to IDLE without writing anything. While
        fetching, merging or saving, the run is flagged and fails at the
        next checkpoint with SyncCancelledError.

        Returns:
            True if there was something to cancel
        """
        with self._lock:
            if self._state in (SyncState.IDLE, SyncState.FAILED):
                return False
            if self._state != SyncState.AWAITING_APPROVAL:
                self._cancel_event.set()
                logger.info(f"Cancellation requested while {self._state.value}")
                return True
            self._pending = None
            progress = self._set_state_locked(
                SyncState.IDLE, "Merge cancelled. Nothing was saved."
            )
        self._notify(progress)
        logger.info("Pending merge cancelled")
        return True

    # Stages ----------------------------------------------------------------------

    def _fetch_and_analyze(self, account_ids: Iterable[str]) -> _PendingRun:
        ids = list(dict.fromkeys(account_ids))

        with self._lock:
            if self._state != SyncState.IDLE:
                raise SyncStateError(
                    f"A sync run is already in progress ({self._state.value})"
                )
            self._check_authorization()
            if len(ids) < MIN_ACCOUNTS:
                raise SyncValidationError(
                    f"Select at least {MIN_ACCOUNTS} accounts to sync."
                )
            self._cancel_event.clear()
            self._last_error = None
            self._account_ids = tuple(ids)
            progress = self._set_state_locked(
                SyncState.FETCHING, "Fetching contacts…"
            )
        self._notify(progress)

        logger.info(f"Starting sync across {len(ids)} accounts: {', '.join(ids)}")

        try:
            self.clusterer.reset()
            snapshot = self._fetch_all(ids)
            self._raise_if_cancelled("fetching")

            self._transition(SyncState.ANALYZING, "Analyzing duplicates…")
            records = [record for account_id in ids for record in snapshot[account_id]]
            clustering = self.clusterer.cluster(records)
            self._raise_if_cancelled("analyzing")
        except Exception as e:
            self._fail(e)
            raise

        result = SyncResult(
            account_ids=ids,
            clusters=clustering.clusters,
            safe=clustering.safe,
            stats=SyncStats(
                fetched={a: len(snapshot[a]) for a in ids},
                clusters_found=len(clustering.clusters),
                duplicates_merged=clustering.duplicate_count,
                safe_records=len(clustering.safe),
            ),
        )
        return _PendingRun(account_ids=ids, snapshot=snapshot, result=result)

    def _merge(self, result: SyncResult) -> list[GoldenContact]:
        """One golden record per cluster, then every safe record on its own."""
        golden = self.merger.merge_all(result.clusters)
        golden.extend(self.merger.merge([record]) for record in result.safe)
        result.stats.final_records = len(golden)
        return golden

    def _merge_and_save(self, pending: _PendingRun) -> SyncResult:
        """Merge and save a run the caller has already moved to MERGING."""
        result = pending.result
        try:
            golden = self._merge(result)
            result.golden = golden
            self._raise_if_cancelled("merging")

            self._transition(
                SyncState.SAVING, f"Saving to {len(pending.account_ids)} accounts…"
            )
            if self.backup_manager is not None:
                result.backup_file = self.backup_manager.create_backup(pending.snapshot)
            self._save_all(pending, golden)
        except Exception as e:
            self._fail(e)
            raise

        with self._lock:
            self._pending = None
            progress = self._set_state_locked(SyncState.IDLE, "Sync complete.")
        self._notify(progress)

        result.completed = True
        logger.info(
            f"Sync complete: {len(golden)} contacts in each of "
            f"{len(pending.account_ids)} accounts "
            f"({result.stats.total_inserted} created, "
            f"{result.stats.total_deleted} removed)"
        )
        return result

    def _fetch_all(self, account_ids: Sequence[str]) -> dict[str, list[ContactRecord]]:
        snapshot: dict[str, list[ContactRecord]] = {}
        failures = self._run_per_account(
            account_ids, self._fetch_account, snapshot, stage="fetch"
        )
        if failures:
            account_id, error = next(iter(failures.items()))
            raise FetchError(
                f"Failed to fetch contacts from {account_id}: {error}",
                account_id=account_id,
            ) from error
        return snapshot

    def _fetch_account(
        self, account_id: str, abort: threading.Event
    ) -> list[ContactRecord]:
        records = self.store.fetch_records(account_id, CONTACT_FIELDS)
        tagged = [
            r if r.account_id == account_id else dataclasses.replace(r, account_id=account_id)
            for r in records
        ]
        logger.info(f"Fetched {len(tagged)} contacts from {account_id}")
        return tagged

    def _save_all(self, pending: _PendingRun, golden: list[GoldenContact]) -> None:
        ids = pending.account_ids
        stats = pending.result.stats

        # Phase 1: every account receives a fresh copy of every final record
        inserted: dict[str, int] = {}
        failures = self._run_per_account(
            ids,
            lambda a, abort: self._insert_into(a, golden, inserted, abort),
            {},
            stage="save",
        )
        stats.inserted = {a: inserted.get(a, 0) for a in ids}
        if failures:
            self._raise_save_failure(failures, ids, "creating contacts")

        if self.save_mode != SaveMode.REPLACE:
            return

        # Phase 2: only once every insert landed, remove the fetched records
        deleted: dict[str, int] = {}
        failures = self._run_per_account(
            ids,
            lambda a, abort: self._delete_from(a, pending.snapshot[a], deleted, abort),
            {},
            stage="save",
        )
        stats.deleted = {a: deleted.get(a, 0) for a in ids}
        if failures:
            self._raise_save_failure(failures, ids, "removing previous contacts")

    def _insert_into(
        self,
        account_id: str,
        golden: list[GoldenContact],
        counts: dict[str, int],
        abort: threading.Event,
    ) -> int:
        counts[account_id] = 0
        for contact in golden:
            self._raise_if_cancelled("saving", abort)
            self.store.insert_record(account_id, contact.copy())
            counts[account_id] += 1
        logger.info(f"Created {counts[account_id]} contacts in {account_id}")
        return counts[account_id]

    def _delete_from(
        self,
        account_id: str,
        records: list[ContactRecord],
        counts: dict[str, int],
        abort: threading.Event,
    ) -> int:
        counts[account_id] = 0
        for record in records:
            self._raise_if_cancelled("saving", abort)
            self.store.delete_record(account_id, record.id)
            counts[account_id] += 1
        logger.info(f"Removed {counts[account_id]} previous contacts from {account_id}")
        return counts[account_id]

    def _raise_save_failure(
        self, failures: dict[str, Exception], ids: Sequence[str], action: str
    ) -> None:
        written = [a for a in ids if a not in failures]
        failed = {a: str(e) for a, e in failures.items()}
        details = "; ".join(f"{a}: {msg}" for a, msg in failed.items())
        first_error = next(iter(failures.values()))

        if self._cancel_event.is_set():
            raise SyncCancelledError(
                f"Sync cancelled while {action}. "
                f"Accounts completed before cancellation: {', '.join(written) or 'none'}"
            ) from first_error

        raise SaveError(
            f"Failed while {action} in {len(failed)} of {len(ids)} accounts ({details}). "
            f"Accounts completed: {', '.join(written) or 'none'}",
            failed_accounts=failed,
            written_accounts=written,
        ) from first_error

    def _run_per_account(
        self,
        account_ids: Sequence[str],
        task: Callable[[str, threading.Event], object],
        results: dict,
        stage: str,
    ) -> dict[str, Exception]:
        """
        Run task once per account in the thread pool and wait for all of them.

        task is called with the account id and an abort event owned by this
        call alone. Results are stored in results[account_id]. Returns the
        exceptions raised, keyed by account id. A timeout marks every
        unfinished account as failed and sets the abort event; workers left
        running stop at their next checkpoint, even after a later run starts.
        """
        failures: dict[str, Exception] = {}
        abort = threading.Event()
        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(account_ids)),
            thread_name_prefix=f"contact-mirror-{stage}",
        )
        futures: dict[Future, str] = {
            executor.submit(task, account_id, abort): account_id
            for account_id in account_ids
        }
        try:
            for future in as_completed(futures, timeout=self.operation_timeout):
                account_id = futures[future]
                try:
                    results[account_id] = future.result()
                except Exception as e:
                    logger.error(f"{stage.capitalize()} failed for {account_id}: {e}")
                    failures[account_id] = e
        except FuturesTimeoutError:
            abort.set()
            for future, account_id in futures.items():
                if not future.done():
                    future.cancel()
                    failures[account_id] = TimeoutError(
                        f"{stage} did not finish within {self.operation_timeout}s"
                    )
            logger.error(f"{stage.capitalize()} timed out after {self.operation_timeout}s")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return failures

    # State helpers ---------------------------------------------------------------

    def _check_authorization(self) -> None:
        status = self.gate.current_status()
        if status != AuthorizationStatus.AUTHORIZED:
            raise SyncPermissionError(
                f"Contacts access is required (status: {status.value})."
            )

    def _raise_if_cancelled(
        self, stage: str, abort: Optional[threading.Event] = None
    ) -> None:
        if abort is not None and abort.is_set():
            raise TimeoutError(f"Stopped {stage} after timeout")
        if self._cancel_event.is_set():
            raise SyncCancelledError(f"Sync cancelled while {stage}")

    def _transition(self, state: SyncState, message: str) -> None:
        with self._lock:
            progress = self._set_state_locked(state, message)
        self._notify(progress)

    def _set_state_locked(self, state: SyncState, message: str) -> SyncProgress:
        logger.debug(f"Sync state {self._state.value} -> {state.value}: {message}")
        self._state = state
        self._message = message
        return self._snapshot_locked()

    def _snapshot_locked(self) -> SyncProgress:
        return SyncProgress(
            state=self._state,
            message=self._message,
            account_ids=self._account_ids,
            pending_clusters=(
                len(self._pending.result.clusters) if self._pending is not None else 0
            ),
            last_error=self._last_error,
        )

    def _fail(self, error: BaseException) -> None:
        """Move to FAILED, drop pending run state, then return to IDLE."""
        with self._lock:
            self._pending = None
            self._last_error = str(error)
            failed = self._set_state_locked(SyncState.FAILED, f"Sync failed: {error}")
            idle = self._set_state_locked(SyncState.IDLE, "")
        logger.error(f"Sync failed: {error}")
        self._notify(failed)
        self._notify(idle)

    def _notify(self, progress: SyncProgress) -> None:
        if self.on_progress is not None:
            self.on_progress(progress)

    def __repr__(self) -> str:
        return (
            f"SyncOrchestrator(store={self.store!r}, state={self._state.value}, "
            f"clusterer={self.clusterer.name}, save_mode={self.save_mode.value})"
        )
