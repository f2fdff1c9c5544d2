"""
Batch coordinator — drives one batch registration end to end.

Flow::

    body ──validate_batch_request──► rejected? → {success: false, error}   (no side effects)
      │
      ├─ per item: validate_contract → RegistrationProcessor.process
      │            (each item independent; failures become that item's result)
      │
      ├─ mapping store down? → {success: false, results so far, error}    (no commit)
      │
      ├─ no item succeeded? → {success: false, results, error}            (no commit)
      │
      └─ prepare_contract_batch (last write wins per internal id)
           → ConfigurationMerger.merge
           → ArtifactWriter.write_all
           → ProcessSupervisor.restart

Error propagation:
    - ``ValidationError`` / per-item failures: reported on the item.
    - ``StorageError`` from the mapping store: aborts the batch before the
      commit. The failing item is the last result returned.
    - ``StorageError`` during the commit: batch-level failure, results kept.
    - ``ProcessError`` during the restart: logged, never returned.

Unless the batch is aborted, every item gets exactly one result, in input
order.
"""

from __future__ import annotations

from typing import Any

from indexer_spine.core.errors import (
    IndexerSpineError,
    ProcessError,
    StorageError,
    ValidationError,
)
from indexer_spine.core.logging import LogContext, get_logger
from indexer_spine.core.result import Err, Ok, Result, partition_results, try_result_async
from indexer_spine.registry.artifacts import ArtifactWriter
from indexer_spine.registry.merger import ConfigurationMerger
from indexer_spine.registry.models import (
    BatchRegistrationResponse,
    ContractRegistration,
    ContractResult,
    PreparedBatch,
    ProcessedContract,
)
from indexer_spine.registry.processor import RegistrationProcessor
from indexer_spine.registry.validation import validate_batch_request, validate_contract
from indexer_spine.supervisor.process import ProcessSupervisor

log = get_logger(__name__)

NOTHING_PROCESSED = "No contracts were processed successfully"


def prepare_contract_batch(processed: list[ProcessedContract]) -> PreparedBatch:
    """Deduplicate by internal id; the last item for an id wins.

    Output order follows the first occurrence of each id.
    """
    entries: dict[str, Any] = {}
    artifacts: dict[str, Any] = {}
    for item in processed:
        entries[item.internal_id] = item.entry
        artifacts[item.artifact.filename] = item.artifact
    return PreparedBatch(entries=list(entries.values()), artifacts=list(artifacts.values()))


def _error_message(error: Exception) -> str:
    if isinstance(error, IndexerSpineError):
        return error.message
    return str(error) or "Processing failed"


class BatchCoordinator:
    """Validates, processes and commits batches of contract registrations."""

    def __init__(
        self,
        processor: RegistrationProcessor,
        merger: ConfigurationMerger,
        writer: ArtifactWriter,
        supervisor: ProcessSupervisor | None,
        *,
        max_contracts: int = 50,
    ):
        self._processor = processor
        self._merger = merger
        self._writer = writer
        self._supervisor = supervisor
        self._max_contracts = max_contracts

    async def _process_one(self, request: ContractRegistration) -> Result[ProcessedContract]:
        reason = validate_contract(request)
        if reason is not None:
            return Err(ValidationError(reason))
        return await try_result_async(lambda: self._processor.process(request))

    async def process_items(
        self, items: list[Any], results: list[ContractResult]
    ) -> list[ProcessedContract]:
        """Process ``items`` in order, appending one result per item to ``results``.

        Raises:
            StorageError: The mapping store failed. ``results`` ends with the
                failing item; later items are not attempted.
        """
        outcomes: list[Result[ProcessedContract]] = []

        for payload in items:
            request = ContractRegistration.from_payload(payload)
            key = request.composite_key
            with LogContext(contract=key):
                outcome = await self._process_one(request)

            match outcome:
                case Ok(item):
                    results.append(
                        ContractResult(
                            contract=key,
                            success=True,
                            message=f'Contract "{key}" {item.action} successfully',
                        )
                    )
                case Err(StorageError() as error):
                    results.append(
                        ContractResult(contract=key, success=False, error=_error_message(error))
                    )
                    raise error
                case Err(error):
                    level = "info" if isinstance(error, ValidationError) else "error"
                    getattr(log, level)("contract_rejected", contract=key, error=_error_message(error))
                    results.append(
                        ContractResult(contract=key, success=False, error=_error_message(error))
                    )
            outcomes.append(outcome)

        processed, _ = partition_results(outcomes)
        return processed

    async def register_batch(self, body: Any) -> BatchRegistrationResponse:
        rejection = validate_batch_request(body, self._max_contracts)
        if rejection is not None:
            log.info("batch_rejected", reason=rejection)
            return BatchRegistrationResponse(success=False, results=[], error=rejection)

        items = body["contracts"]
        results: list[ContractResult] = []
        try:
            processed = await self.process_items(items, results)
        except StorageError as e:
            log.error("batch_aborted", processed=len(results), **e.to_dict())
            return BatchRegistrationResponse(
                success=False,
                results=results,
                error=f"Failed to resolve contract mappings: {e.message}",
            )

        if not processed:
            return BatchRegistrationResponse(success=False, results=results, error=NOTHING_PROCESSED)

        batch = prepare_contract_batch(processed)
        try:
            await self._merger.merge(batch.entries)
            self._writer.write_all(batch.artifacts)
        except StorageError as e:
            log.error("batch_commit_failed", **e.to_dict())
            return BatchRegistrationResponse(
                success=False,
                results=results,
                error=f"Failed to update indexer configuration: {e.message}",
            )

        await self._restart_indexer()

        log.info(
            "batch_committed",
            items=len(items),
            succeeded=len(processed),
            entries=len(batch.entries),
        )
        return BatchRegistrationResponse(success=True, results=results)

    async def _restart_indexer(self) -> None:
        if self._supervisor is None:
            return
        try:
            await self._supervisor.restart()
        except ProcessError as e:
            log.error("indexer_restart_failed", **e.to_dict())
