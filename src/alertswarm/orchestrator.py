"""Round-based investigation orchestrator.

One ``orchestrate()`` call investigates one alert:

    extract entities -> retrieve historical context (once)
    -> rounds of {plan -> dispatch to specialist agents -> collect}
    -> synthesize report -> persist -> add to the similarity index

Task-level problems become failed findings. Only a persistence failure, or
anything else escaping the body, reaches the caller; it is re-raised after
a best-effort ``failed`` persist.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from functools import partial
from typing import Any, Optional, Sequence

import structlog

from alertswarm.agents import FileAgent, NetworkAgent, SpecialistAgent, UserAgent
from alertswarm.config import Config, get_config
from alertswarm.enrichment import get_enrichment_clients
from alertswarm.exceptions import PersistenceError
from alertswarm.llm import ChatModelCompletionService
from alertswarm.models import (
    AgentResult,
    AgentTask,
    Alert,
    Entities,
    InvestigationOutcome,
    InvestigationState,
    InvestigationStatus,
    NotificationPhase,
    Priority,
    TaskType,
)
from alertswarm.notifications import LoggingStatusNotifier, StatusNotifier, StatusUpdate, WebhookStatusNotifier
from alertswarm.persistence.analytics import SqlAnalyticsStore
from alertswarm.persistence.database import get_async_session
from alertswarm.persistence.protocols import RelationalStore, SimilaritySearch
from alertswarm.persistence.relational import SqlRelationalStore
from alertswarm.persistence.similarity import ChromaSimilaritySearch
from alertswarm.planner import TaskPlanner
from alertswarm.retrieval import ContextRetriever, build_semantic_query, extract_entities

MANAGER_AGENT = "Manager"
DEFAULT_MAX_ROUNDS = 3
INDEXED_STATUS = "investigated"


def fallback_tasks(entities: Entities, *, log_hours: int = 24) -> list[AgentTask]:
    """Deterministic first-round plan used when the planner yields nothing."""
    tasks: list[AgentTask] = []
    if entities.ip:
        tasks.append(AgentTask(type=TaskType.CHECK_IP.value, params={"ip": entities.ip}, priority=Priority.HIGH))
        tasks.append(AgentTask(
            type=TaskType.QUERY_LOGS.value,
            params={"ip": entities.ip, "hours": log_hours},
            priority=Priority.MEDIUM,
        ))
    if entities.hash:
        tasks.append(AgentTask(type=TaskType.CHECK_HASH.value, params={"hash": entities.hash}, priority=Priority.HIGH))
    if entities.username:
        tasks.append(AgentTask(
            type=TaskType.CHECK_USER.value,
            params={"username": entities.username},
            priority=Priority.MEDIUM,
        ))
    return tasks


class InvestigationOrchestrator:
    """Coordinates specialist agents through investigation rounds."""

    def __init__(
        self,
        *,
        agents: Sequence[SpecialistAgent],
        planner: TaskPlanner,
        retriever: ContextRetriever,
        store: RelationalStore,
        notifier: Optional[StatusNotifier] = None,
        similarity: Optional[SimilaritySearch] = None,
        logger: Optional[Any] = None,
        task_timeout_seconds: float = 60.0,
        log_query_hours: int = 24,
    ):
        """Initialize the orchestrator.

        Args:
            agents: Specialist agents; each task kind must be handled by one agent.
            planner: Task planner and report synthesizer.
            retriever: Historical context retriever.
            store: Relational store holding the alert's analysis record.
            notifier: Status notifier. Defaults to structured-log notifications.
            similarity: Similarity index that completed investigations are added to.
            logger: Bound structlog logger.
            task_timeout_seconds: Upper bound for one dispatched task.
            log_query_hours: Window used by the fallback ``query_logs`` task.

        Raises:
            ValueError: If two agents claim the same task kind.
        """
        self._planner = planner
        self._retriever = retriever
        self._store = store
        self._notifier = notifier or LoggingStatusNotifier()
        self._similarity = similarity
        self._logger = logger or structlog.get_logger().bind(component="orchestrator")
        self._task_timeout = task_timeout_seconds
        self._log_query_hours = log_query_hours

        self._routes: dict[TaskType, SpecialistAgent] = {}
        for agent in agents:
            for kind in agent.task_types:
                if kind in self._routes:
                    raise ValueError(
                        f"Task type {kind.value!r} handled by both {self._routes[kind].name} and {agent.name}"
                    )
                self._routes[kind] = agent

    def route(self, task: AgentTask) -> Optional[SpecialistAgent]:
        """Agent responsible for a task, or None if the kind is unknown."""
        try:
            return self._routes.get(TaskType(task.type))
        except ValueError:
            return None

    async def orchestrate(self, alert: Alert, max_rounds: int = DEFAULT_MAX_ROUNDS) -> InvestigationOutcome:
        """Investigate one alert.

        Args:
            alert: Alert under investigation.
            max_rounds: Upper bound on plan/dispatch/collect rounds.

        Returns:
            The outcome, with the synthesized report in ``report``.

        Raises:
            PersistenceError: If the results cannot be stored.
        """
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")

        state = InvestigationState(alert_id=alert.id)
        log = self._logger.bind(alert_id=alert.id, tenant_id=alert.tenant_id)

        self._emit(log, "investigation_started", title=alert.title, max_rounds=max_rounds)
        state.add_log(f"Orchestrating investigation for alert: {alert.title}")
        await self._notify(alert, StatusUpdate(
            phase=NotificationPhase.STARTED,
            message=f"Investigation started for {alert.title}",
            max_rounds=max_rounds,
        ))

        try:
            state.entities = extract_entities(alert)
            self._emit(log, "entities_extracted", **state.entities.model_dump())

            state.historical_context = await self._retriever.find_historical_context(
                state.entities,
                alert.tenant_id,
                exclude_alert_id=alert.id,
            )
            state.add_log(f"Found {len(state.historical_context)} similar historical cases.")

            await self._run_rounds(alert, state, max_rounds, log)

            state.add_log("Synthesizing final report.")
            report = await self._planner.synthesize_report(
                alert,
                state.findings,
                state.historical_context,
                state.log,
            )

            outcome = InvestigationOutcome(
                alert_id=alert.id,
                report=report,
                status=InvestigationStatus.COMPLETED,
                rounds=state.round,
                findings=list(state.findings),
                log=[*state.log, "Investigation complete."],
                historical_context=list(state.historical_context),
                investigated_at=datetime.utcnow(),
            )
            await self._persist(alert.id, outcome.to_analysis())
            await self._index(alert, state, report, log)
        except Exception as e:
            self._emit(log, "investigation_failed", level="error", error=str(e), error_type=type(e).__name__)
            await self._persist_failure(alert, state, e, log)
            await self._notify(alert, StatusUpdate(
                phase=NotificationPhase.FAILED,
                message=f"Investigation failed: {e}",
                round=state.round or None,
                max_rounds=max_rounds,
            ))
            raise

        self._emit(
            log,
            "investigation_completed",
            rounds=outcome.rounds,
            findings=len(outcome.findings),
            failed_findings=sum(1 for f in outcome.findings if not f.succeeded),
        )
        await self._notify(alert, StatusUpdate(
            phase=NotificationPhase.COMPLETED,
            message=f"Investigation completed after {outcome.rounds} round(s)",
            round=outcome.rounds,
            max_rounds=max_rounds,
        ))
        return outcome

    async def _run_rounds(self, alert: Alert, state: InvestigationState, max_rounds: int, log: Any) -> None:
        for round_number in range(1, max_rounds + 1):
            state.round = round_number
            await self._notify(alert, StatusUpdate(
                phase=NotificationPhase.ROUND,
                message=f"Round {round_number} of {max_rounds}",
                round=round_number,
                max_rounds=max_rounds,
            ))

            if round_number == 1:
                tasks = await self._plan_first_round(alert, state, log)
            else:
                tasks = await self._plan_followup_round(alert, state, log)

            if not tasks:
                state.done = True
                break

            state.add_log(
                f"[Round {round_number}] Dispatching {len(tasks)} tasks: "
                + ", ".join(task.type for task in tasks)
            )
            self._emit(log, "round_dispatching", round=round_number, tasks=[t.type for t in tasks])
            await self._dispatch(alert, state, tasks)

    async def _plan_first_round(self, alert: Alert, state: InvestigationState, log: Any) -> list[AgentTask]:
        try:
            tasks = await self._planner.plan_initial(alert, state.entities)
        except Exception as e:
            self._emit(log, "initial_plan_failed", level="warning", error=str(e))
            tasks = []

        if tasks:
            state.add_log(f"[Round 1] Planner proposed {len(tasks)} tasks.")
            return tasks

        tasks = fallback_tasks(state.entities, log_hours=self._log_query_hours)
        if tasks:
            state.add_log(f"[Round 1] Planner produced no tasks; using deterministic plan ({len(tasks)} tasks).")
        else:
            state.add_log("[Round 1] No entities to investigate; no tasks dispatched.")
        return tasks

    async def _plan_followup_round(self, alert: Alert, state: InvestigationState, log: Any) -> list[AgentTask]:
        try:
            tasks = await self._planner.plan_followup(alert, state.findings, state.log)
        except Exception as e:
            # Round >= 2 planner failure ends the investigation with what we have
            self._emit(log, "followup_plan_failed", level="warning", round=state.round, error=str(e))
            tasks = []

        if not tasks:
            state.add_log(f"[Round {state.round}] No further investigation needed.")
        return tasks

    async def _run_task(self, task: AgentTask) -> AgentResult:
        agent = self.route(task)
        if agent is None:
            return AgentResult.failure(MANAGER_AGENT, f"No agent handles task type: {task.type}")
        return await asyncio.wait_for(agent.process(task), timeout=self._task_timeout)

    async def _dispatch(self, alert: Alert, state: InvestigationState, tasks: list[AgentTask]) -> None:
        """Run a round's tasks concurrently and wait for all of them to settle."""
        outcomes = await asyncio.gather(*(self._run_task(task) for task in tasks), return_exceptions=True)

        for task, outcome in zip(tasks, outcomes):
            if isinstance(outcome, BaseException):
                agent = self.route(task)
                agent_name = agent.name if agent else MANAGER_AGENT
                if isinstance(outcome, asyncio.TimeoutError):
                    error = f"timed out after {self._task_timeout:g}s"
                else:
                    error = str(outcome) or type(outcome).__name__
                result = AgentResult.failure(agent_name, f"{task.type} failed: {error}")
                state.add_log(f"[Round {state.round}] [ERROR] [{agent_name}] {task.type} failed: {error}")
            else:
                result = outcome
                marker = "" if result.succeeded else " (failed)"
                state.add_log(f"[Round {state.round}] [{result.agent}]{marker} {result.summary}")

            state.findings.append(result)
            await self._notify(alert, StatusUpdate(
                phase=NotificationPhase.FINDING,
                message=result.summary,
                round=state.round,
                finding=result,
            ))

    async def _persist(self, alert_id: str, analysis: dict[str, Any]) -> None:
        """Merge the analysis into the alert's stored record."""
        try:
            current = await self._store.get_alert_analysis(alert_id)
            await self._store.update_alert_analysis(alert_id, {**current, **analysis})
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(alert_id, str(e)) from e

    async def _persist_failure(self, alert: Alert, state: InvestigationState, error: Exception, log: Any) -> None:
        analysis = {
            "swarmFindings": [f.model_dump(mode="json") for f in state.findings],
            "investigationLog": [*state.log, f"[ERROR] Investigation failed: {error}"],
            "investigationRounds": state.round,
            "investigationStatus": InvestigationStatus.FAILED.value,
            "investigationError": str(error),
            "investigatedAt": datetime.utcnow().isoformat(),
        }
        try:
            await self._persist(alert.id, analysis)
        except Exception as e:
            self._emit(log, "failure_persist_failed", level="error", error=str(e))

    async def _index(self, alert: Alert, state: InvestigationState, report: str, log: Any) -> None:
        """Add the investigated alert to the similarity index so later runs can find it."""
        if self._similarity is None:
            return

        parts = [alert.description]
        if not state.entities.is_empty:
            parts.append(build_semantic_query(state.entities))
        description = "\n".join(part for part in parts if part)
        verdict = next((line.strip() for line in report.splitlines() if line.strip()), "")
        try:
            await self._similarity.index_alert(
                alert.id,
                alert.tenant_id,
                alert.title,
                description,
                status=INDEXED_STATUS,
                resolution=verdict[:500] or None,
                tags=state.entities.values(),
            )
        except Exception as e:
            self._emit(log, "similarity_index_failed", level="warning", error=str(e))

    async def aclose(self) -> None:
        """Release the notifier's resources."""
        close = getattr(self._notifier, "close", None)
        if close is not None:
            await close()

    async def _notify(self, alert: Alert, status: StatusUpdate) -> None:
        try:
            await self._notifier.notify(alert.tenant_id, alert.id, status)
        except Exception as e:
            self._emit(self._logger, "status_notify_failed", level="warning", phase=status.phase.value, error=str(e))

    @staticmethod
    def _emit(log: Any, event: str, level: str = "info", **fields: Any) -> None:
        # Logging must never affect control flow
        try:
            getattr(log, level)(event, **fields)
        except Exception:
            pass


def build_orchestrator(
    config: Optional[Config] = None,
    *,
    similarity: Optional[SimilaritySearch] = None,
) -> InvestigationOrchestrator:
    """Wire an orchestrator with production collaborators.

    Args:
        config: Configuration. Defaults to the global config.
        similarity: Similarity search override. Defaults to the Chroma index.

    Returns:
        A ready-to-use orchestrator.
    """
    config = config or get_config()
    logger = structlog.get_logger().bind(component="orchestrator")

    store = SqlRelationalStore(partial(get_async_session, config.database.url))
    analytics = SqlAnalyticsStore(
        partial(get_async_session, config.database.analytics_url or config.database.url)
    )

    if similarity is None:
        try:
            similarity = ChromaSimilaritySearch(config.similarity.persist_dir, config.similarity.collection)
        except Exception as e:
            logger.warning("similarity_search_unavailable", error=str(e))

    llm = None
    if config.llm.is_configured:
        llm = ChatModelCompletionService.from_config(config.llm)
    else:
        logger.warning("llm_not_configured", detail="using deterministic task plan and plain reports")

    notifier: StatusNotifier
    if config.notifier.webhook_url:
        notifier = WebhookStatusNotifier(config.notifier.webhook_url, timeout=config.notifier.timeout_seconds)
    else:
        notifier = LoggingStatusNotifier()

    clients = get_enrichment_clients()
    agents: list[SpecialistAgent] = [
        NetworkAgent(clients, analytics, log_limit=config.investigation.log_query_limit),
        FileAgent(clients.virustotal),
        UserAgent(store),
    ]

    return InvestigationOrchestrator(
        agents=agents,
        planner=TaskPlanner(llm, timeout_seconds=config.llm.timeout_seconds),
        retriever=ContextRetriever(store, similarity),
        store=store,
        notifier=notifier,
        similarity=similarity,
        logger=logger,
        task_timeout_seconds=config.investigation.task_timeout_seconds,
        log_query_hours=config.investigation.log_query_hours,
    )
