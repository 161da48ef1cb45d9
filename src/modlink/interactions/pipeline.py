"""InteractionPipeline - runs interaction generation end to end.

Steps:

1. Call-graph edges get LLM semantics and become ``ast`` interactions;
   extends/implements relationships are added alongside.
2. Import-only and file-level import pairs become ``ast-import``
   interactions.
3. Process groups are computed and the LLM proposes cross-process
   interactions, followed by fan-in anomaly cleanup.
4. The coverage gate runs targeted inference passes until relationship
   coverage meets the threshold.

Steps run strictly in order; every LLM call is awaited before the next
one starts because each accepted proposal narrows what later gates allow.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from modlink.core.errors import StoreError
from modlink.index import InsertOutcome
from modlink.index.models import InteractionPattern, InteractionSource
from modlink.interactions.builder import InteractionBuilder
from modlink.interactions.coverage import remove_fan_in_anomalies, run_coverage_inference
from modlink.interactions.cross_process import infer_cross_process_interactions, target_symbols
from modlink.interactions.models import GenerateResult, InferenceRunState, InferredInteraction
from modlink.interactions.process_groups import build_process_groups, get_process_group_label
from modlink.interactions.semantics import describe_edges

if TYPE_CHECKING:
    from modlink.config.models import InteractionsConfig, LLMConfig
    from modlink.index import IndexStore
    from modlink.llm import LLMClient

log = structlog.get_logger(__name__)


class InteractionPipeline:
    """Generates the interactions table for one index.

    Args:
        store: Index to read evidence from and write interactions to.
        client: Completion client for the three LLM passes.
        llm_config: Model name and token caps.
        config: Batch size, coverage target, retry and fan-in settings.
        dry_run: Run every LLM pass but write nothing. Steps 2 to 4 only
            count what they would add; the coverage loop is skipped.
        force: Clear existing interactions first. Without it a populated
            table is an error.
    """

    def __init__(
        self,
        store: IndexStore,
        client: LLMClient,
        *,
        llm_config: LLMConfig,
        config: InteractionsConfig,
        dry_run: bool = False,
        force: bool = False,
    ) -> None:
        self._store = store
        self._client = client
        self._llm = llm_config
        self._config = config
        self._dry_run = dry_run
        self._force = force
        self.state = InferenceRunState()

    async def run(self) -> GenerateResult:
        self._prepare_table()
        result = GenerateResult(dry_run=self._dry_run)
        builder = InteractionBuilder(
            self._store,
            self.state,
            test_module_ids=self._store.get_test_module_ids(),
            dry_run=self._dry_run,
        )

        await self._step_call_graph(builder, result)
        self._step_imports(builder, result)

        groups = build_process_groups(self._store)
        result.process_group_count = groups.group_count
        for group_id, modules in groups.group_to_modules.items():
            log.debug(
                "process_group",
                group=group_id,
                label=get_process_group_label(modules),
                modules=len(modules),
            )

        inferred = await infer_cross_process_interactions(
            self._store,
            groups,
            self._client,
            self.state,
            model=self._llm.model,
            max_tokens=self._llm.inference_max_tokens,
        )
        self._step_persist_cross_process(inferred, result)

        if not self._dry_run:
            loop = await run_coverage_inference(
                self._store,
                groups,
                self._client,
                self.state,
                model=self._llm.model,
                max_tokens=self._llm.inference_max_tokens,
                min_coverage=self._config.min_relationship_coverage,
                max_gate_retries=self._config.max_gate_retries,
            )
            result.targeted_interactions = loop.inserted
            result.coverage_passes = loop.passes
            log.info(
                "step_done",
                step="coverage",
                passes=loop.passes,
                inserted=loop.inserted,
                auto_skipped=loop.auto_skipped,
                stop_reason=loop.stop_reason,
            )

        result.relationship_coverage = self._store.get_relationship_coverage()
        log.info(
            "interactions_generated",
            coverage=round(result.relationship_coverage.coverage_percent, 1),
            dry_run=self._dry_run,
        )
        return result

    # -----------------------------------------------------------------
    # Steps
    # -----------------------------------------------------------------

    def _prepare_table(self) -> None:
        existing = self._store.count_interactions()
        if existing == 0:
            return
        if not self._force:
            raise StoreError.not_empty("interactions", existing)
        if self._dry_run:
            log.info("dry_run_keeps_existing_interactions", existing=existing)
            return
        cleared = self._store.clear_interactions()
        log.info("interactions_cleared", count=cleared)

    async def _step_call_graph(self, builder: InteractionBuilder, result: GenerateResult) -> None:
        edges = self._store.get_enriched_module_call_graph()
        result.total_edges = len(edges)
        result.utility_count = sum(1 for e in edges if e.edge_pattern is InteractionPattern.UTILITY)
        result.business_count = sum(
            1 for e in edges if e.edge_pattern is InteractionPattern.BUSINESS
        )
        if not edges:
            log.warning("no_call_graph_edges", hint="assign definitions to modules first")

        modules_by_id = {m.id: m for m in self._store.get_all_modules() if m.id is not None}
        suggestions = await describe_edges(
            edges,
            self._client,
            model=self._llm.model,
            max_tokens=self._llm.semantic_max_tokens,
            batch_size=self._config.batch_size,
            modules_by_id=modules_by_id,
        )
        counts = builder.persist_suggestions(suggestions)
        result.ast_interactions = counts.inserted
        result.test_internal_count += counts.test_internal
        result.skipped_duplicates += counts.skipped

        inheritance = builder.sync_inheritance()
        result.inheritance_interactions = inheritance.inserted
        result.test_internal_count += inheritance.test_internal
        result.skipped_duplicates += inheritance.skipped

        log.info(
            "step_done",
            step="call_graph",
            edges=len(edges),
            business=result.business_count,
            utility=result.utility_count,
            inserted=counts.inserted,
            inheritance=inheritance.inserted,
        )

    def _step_imports(self, builder: InteractionBuilder, result: GenerateResult) -> None:
        imports = builder.build_import_interactions()
        file_level = builder.build_file_level_interactions()
        result.import_based_interactions = imports.inserted
        result.file_level_interactions = file_level.inserted
        result.test_internal_count += imports.test_internal + file_level.test_internal
        result.skipped_duplicates += imports.skipped + file_level.skipped
        log.info(
            "step_done",
            step="imports",
            import_based=imports.inserted,
            file_level=file_level.inserted,
        )

    def _step_persist_cross_process(
        self, inferred: list[InferredInteraction], result: GenerateResult
    ) -> None:
        if self._dry_run:
            result.inferred_interactions = len(inferred)
            log.info("step_done", step="cross_process", would_add=len(inferred))
            return

        for proposal in inferred:
            symbols = target_symbols(self._store, proposal.to_module_id)
            outcome = self._store.insert_interaction(
                proposal.from_module_id,
                proposal.to_module_id,
                source=InteractionSource.LLM_INFERRED,
                weight=1,
                pattern=InteractionPattern.BUSINESS,
                symbols=symbols or None,
                semantic=proposal.reason,
                confidence=proposal.confidence,
            )
            if outcome is InsertOutcome.INSERTED:
                result.inferred_interactions += 1
            else:
                result.skipped_duplicates += 1

        if result.inferred_interactions > 0:
            _, removed = remove_fan_in_anomalies(
                self._store,
                iqr_multiplier=self._config.fan_in_iqr_multiplier,
                min_fan_in=self._config.fan_in_min,
                max_ast_fan_in=self._config.fan_in_max_ast,
            )
            result.fan_in_removed = removed

        log.info(
            "step_done",
            step="cross_process",
            inserted=result.inferred_interactions,
            fan_in_removed=result.fan_in_removed,
        )
