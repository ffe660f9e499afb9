#!/usr/bin/env python3
"""
Import session state machine for asset-inventory.

One session covers one uploaded file:

    UPLOADED -> MAPPED -> PREVIEWED -> COMMITTED

``reset()`` returns to UPLOADED from any state and discards the file, the column
mapping, custom mappings and any cached preview or report. ``back()`` steps one
state back without re-running the auto-mapper, so operator edits survive.

Every parse, preview and commit takes a new generation number. Results of an
operation that has been superseded are dropped instead of being stored, which is
what makes background execution safe.
"""

import threading
from concurrent.futures import Executor, Future
from enum import Enum
from typing import Callable, Dict, List, Optional

from . import batch
from .automap import AutoMapResult, auto_map
from .batch import CommitReport, ErrorPolicy, PreviewReport
from .field_registry import ASSET_REGISTRY, FieldRegistry
from .fuzzy import FuzzyConfig
from .logging_config import get_logger
from .parsers import ParsedFile, parse_bytes
from .transformer import ColumnMapping, CustomMapping, EnumPolicy, ValidationOutcome

logger = get_logger(__name__)


class SessionState(str, Enum):
    UPLOADED = "uploaded"
    MAPPED = "mapped"
    PREVIEWED = "previewed"
    COMMITTED = "committed"


class SessionStateError(RuntimeError):
    """An operation was requested in a state that does not allow it."""

    pass


class CommitNotAllowedError(SessionStateError):
    """The error policy does not allow committing the current preview."""

    pass


class StaleOperationError(RuntimeError):
    """A newer operation superseded this one; its result was discarded."""

    pass


class ImportSession:
    """Holds the state of one bulk import from upload to commit."""

    def __init__(
        self,
        registry: FieldRegistry = ASSET_REGISTRY,
        preview_limit: int = batch.DEFAULT_PREVIEW_LIMIT,
        enum_policy: EnumPolicy = EnumPolicy.LENIENT,
        error_policy: ErrorPolicy = ErrorPolicy.SKIP_INVALID_ROWS,
        fuzzy_config: Optional[FuzzyConfig] = None,
        use_legacy_aliases: bool = False,
        store=None,
    ):
        self.registry = registry
        self.preview_limit = preview_limit
        self.enum_policy = EnumPolicy(enum_policy)
        self.error_policy = ErrorPolicy(error_policy)
        self.fuzzy_config = fuzzy_config or FuzzyConfig()
        self.use_legacy_aliases = use_legacy_aliases
        self.store = store

        self._lock = threading.RLock()
        self._generation = 0
        self._clear()

    @classmethod
    def from_config(cls, config, store=None, registry: FieldRegistry = ASSET_REGISTRY):
        """Create a session using the limits and policies of a loaded Config."""
        return cls(
            registry=registry,
            preview_limit=config.preview_limit,
            enum_policy=config.enum_policy,
            error_policy=config.error_policy,
            fuzzy_config=config.fuzzy_config(),
            use_legacy_aliases=config.use_legacy_aliases,
            store=store,
        )

    def _clear(self) -> None:
        self.state = SessionState.UPLOADED
        self.parsed: Optional[ParsedFile] = None
        self.mapping: ColumnMapping = {}
        self.custom_mappings: List[CustomMapping] = []
        self.automap_result: Optional[AutoMapResult] = None
        self.preview_outcomes: List[ValidationOutcome] = []
        self.report: Optional[CommitReport] = None
        self.commit_outcomes: List[ValidationOutcome] = []

    # -- generations -----------------------------------------------------

    def _next_generation(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            allowed = ", ".join(state.value for state in states)
            raise SessionStateError(
                f"Cannot do this while {self.state.value}; expected {allowed}"
            )

    # -- upload ----------------------------------------------------------

    @property
    def headers(self) -> List[str]:
        return list(self.parsed.headers) if self.parsed else []

    @property
    def rows(self) -> list:
        return self.parsed.rows if self.parsed else []

    def load_bytes(self, data: bytes, filename: str) -> ParsedFile:
        """Parse uploaded content and load it. ParseError leaves the session as is."""
        generation = self._next_generation()
        parsed = parse_bytes(data, filename)
        return self.load_parsed(parsed, generation)

    def load_parsed(self, parsed: ParsedFile, generation: Optional[int] = None) -> ParsedFile:
        """
        Load an already parsed file and move to MAPPED.

        The auto-mapper runs only when the file differs from the one already
        loaded; re-loading the same content keeps the operator's mapping.
        """
        if generation is None:
            generation = self._next_generation()

        with self._lock:
            if not self._is_current(generation):
                raise StaleOperationError("A newer upload replaced this one")
            self._require(SessionState.UPLOADED)

            same_file = (
                self.parsed is not None
                and parsed.fingerprint
                and parsed.fingerprint == self.parsed.fingerprint
            )
            self.parsed = parsed
            self.preview_outcomes = []
            self.report = None

            if not same_file:
                self.custom_mappings = []
                self.automap_result = auto_map(
                    parsed.headers,
                    self.registry.all_fields(),
                    self.fuzzy_config,
                    self.use_legacy_aliases,
                )
                self.mapping = dict(self.automap_result.mapping)
                logger.info(
                    f"Loaded {parsed.source_name}: {len(parsed.headers)} headers, "
                    f"{len(parsed.rows)} rows, {self.automap_result.mapped_count} auto-mapped"
                )
            else:
                logger.info(f"Reloaded {parsed.source_name}; keeping current mapping")

            self.state = SessionState.MAPPED
            return parsed

    def continue_to_mapping(self) -> None:
        """Go forward from UPLOADED to MAPPED with the file already loaded."""
        self._require(SessionState.UPLOADED)
        if self.parsed is None:
            raise SessionStateError("No file has been loaded")
        self.state = SessionState.MAPPED

    # -- mapping edits ---------------------------------------------------

    def _editing(self) -> None:
        self._require(SessionState.MAPPED, SessionState.PREVIEWED)
        # An edit makes any in-flight preview stale
        self._next_generation()
        if self.state is SessionState.PREVIEWED:
            self.preview_outcomes = []
            self.state = SessionState.MAPPED

    def set_mapping(self, header: str, path: Optional[str]) -> None:
        """Map a header to a target path, or to None to skip it."""
        with self._lock:
            self._editing()
            if header not in self.headers:
                raise KeyError(f"Unknown source header: {header}")
            if path is not None and path not in self.registry:
                raise KeyError(f"Unknown target field: {path}")
            self.mapping[header] = path
            if path:
                self.custom_mappings = [
                    custom
                    for custom in self.custom_mappings
                    if custom.source_header != header
                ]

    def set_custom_mapping(self, header: str, key: str, scope: str = "asset") -> CustomMapping:
        """Store a header under ``extended.<key>`` (or ``hardware.extended.<key>``)."""
        with self._lock:
            self._editing()
            if header not in self.headers:
                raise KeyError(f"Unknown source header: {header}")
            custom = CustomMapping(header, key, scope)
            self.custom_mappings = [
                existing
                for existing in self.custom_mappings
                if existing.source_header != header
            ]
            self.custom_mappings.append(custom)
            self.mapping[header] = None
            return custom

    def remove_custom_mapping(self, header: str) -> None:
        with self._lock:
            self._editing()
            self.custom_mappings = [
                custom for custom in self.custom_mappings if custom.source_header != header
            ]

    def replace_mappings(
        self, mapping: Dict[str, Optional[str]], custom_mappings: List[CustomMapping]
    ) -> None:
        """
        Replace the custom mappings and apply header edits (e.g. a saved mapping file).

        Every header and target path is checked first; on KeyError the session
        is left exactly as it was.
        """
        with self._lock:
            self._require(SessionState.MAPPED, SessionState.PREVIEWED)
            headers = set(self.headers)
            for header, path in mapping.items():
                if header not in headers:
                    raise KeyError(f"Unknown source header: {header}")
                if path is not None and path not in self.registry:
                    raise KeyError(f"Unknown target field: {path}")
            for custom in custom_mappings:
                if custom.source_header not in headers:
                    raise KeyError(f"Unknown source header: {custom.source_header}")

            new_mapping = dict(self.mapping)
            new_mapping.update(mapping)
            new_custom: Dict[str, CustomMapping] = {}
            for custom in custom_mappings:
                new_custom.pop(custom.source_header, None)
                new_custom[custom.source_header] = custom
                new_mapping[custom.source_header] = None

            self._editing()
            self.mapping = new_mapping
            self.custom_mappings = list(new_custom.values())

    # -- preview and commit ----------------------------------------------

    def _run_preview(self, generation: int) -> List[ValidationOutcome]:
        with self._lock:
            mapping = dict(self.mapping)
            custom_mappings = list(self.custom_mappings)
            rows = list(self.rows)

        outcomes = batch.preview(
            rows,
            mapping,
            custom_mappings,
            self.preview_limit,
            self.registry,
            self.enum_policy,
        )

        with self._lock:
            if not self._is_current(generation):
                raise StaleOperationError("A newer operation superseded this preview")
            self.preview_outcomes = outcomes
            self.state = SessionState.PREVIEWED
        return outcomes

    def preview(self) -> List[ValidationOutcome]:
        self._require(SessionState.MAPPED, SessionState.PREVIEWED)
        return self._run_preview(self._next_generation())

    def preview_report(self) -> PreviewReport:
        return batch.summarize(self.preview_outcomes)

    def commit_allowed(self) -> bool:
        if self.state is not SessionState.PREVIEWED:
            return False
        return batch.commit_allowed(
            self.preview_outcomes, len(self.rows), self.error_policy
        )

    def _run_commit(self, generation: int) -> CommitReport:
        with self._lock:
            mapping = dict(self.mapping)
            custom_mappings = list(self.custom_mappings)
            rows = list(self.rows)

        outcomes: List[ValidationOutcome] = []
        report, valid_records = batch.plan_commit(
            rows,
            mapping,
            custom_mappings,
            self.store,
            self.registry,
            self.enum_policy,
            outcomes,
        )

        with self._lock:
            if not self._is_current(generation):
                raise StaleOperationError("A newer operation superseded this commit")
            # Saved only while this commit is still the current generation
            if self.store is not None and valid_records:
                self.store.save_all(valid_records)
            batch.log_commit(report, self.error_policy)
            self.report = report
            self.commit_outcomes = outcomes
            self.state = SessionState.COMMITTED
        return report

    def _check_commit(self) -> None:
        self._require(SessionState.PREVIEWED)
        if not self.commit_allowed():
            raise CommitNotAllowedError(
                f"Error policy '{self.error_policy.value}' does not allow committing "
                f"this preview ({self.preview_report().invalid_count} invalid rows)"
            )

    def commit(self) -> CommitReport:
        self._check_commit()
        return self._run_commit(self._next_generation())

    # -- background execution --------------------------------------------

    def _submit(self, executor: Executor, run: Callable[[int], object]) -> Future:
        generation = self._next_generation()
        return executor.submit(run, generation)

    def submit_preview(self, executor: Executor) -> Future:
        """Run the preview on ``executor``; a later operation makes it stale."""
        self._require(SessionState.MAPPED, SessionState.PREVIEWED)
        return self._submit(executor, self._run_preview)

    def submit_commit(self, executor: Executor) -> Future:
        self._check_commit()
        return self._submit(executor, self._run_commit)

    # -- navigation ------------------------------------------------------

    def back(self) -> SessionState:
        """Step back one state, keeping the mapping."""
        with self._lock:
            if self.state is SessionState.MAPPED:
                self.state = SessionState.UPLOADED
            elif self.state is SessionState.PREVIEWED:
                self.state = SessionState.MAPPED
            else:
                raise SessionStateError(f"Cannot go back from {self.state.value}")
            self._next_generation()
            return self.state

    def reset(self) -> None:
        """Discard everything and return to UPLOADED."""
        with self._lock:
            self._next_generation()
            self._clear()

    # -- reporting -------------------------------------------------------

    def unmapped_headers(self) -> List[str]:
        return batch.unmapped_headers(self.headers, self.mapping, self.custom_mappings)

    def warnings(self) -> List[str]:
        """Session-level problems that will repeat on every row."""
        messages = [
            f"Required field '{descriptor.label}' ({descriptor.path}) is not mapped"
            for descriptor in batch.missing_required_mappings(
                self.mapping, self.custom_mappings, self.registry
            )
        ]
        if self.automap_result:
            for path, headers in self.automap_result.collisions.items():
                messages.append(
                    f"Headers {', '.join(headers)} all match '{path}'; only "
                    f"'{headers[0]}' was auto-mapped"
                )
        if self.parsed:
            messages.extend(self.parsed.warnings)
        return messages

    def to_dict(self) -> Dict[str, object]:
        return {
            "state": self.state.value,
            "source_name": self.parsed.source_name if self.parsed else None,
            "headers": self.headers,
            "row_count": len(self.rows),
            "mapping": dict(self.mapping),
            "custom_mappings": [
                {"source_header": c.source_header, "key": c.key, "scope": c.scope}
                for c in self.custom_mappings
            ],
            "suggestions": (
                {
                    header: [{"path": path, "score": score} for path, score in ranked]
                    for header, ranked in self.automap_result.suggestions.items()
                }
                if self.automap_result
                else {}
            ),
            "unmapped_headers": self.unmapped_headers(),
            "warnings": self.warnings(),
            "preview": self.preview_report().to_dict() if self.preview_outcomes else None,
            "commit_allowed": self.commit_allowed(),
            "report": self.report.to_dict() if self.report else None,
        }
