"""AI-backed task planner and report synthesis."""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Optional, Sequence

import structlog

from alertswarm.exceptions import PlannerError
from alertswarm.llm import LLMCompletionService
from alertswarm.models import (
    AgentResult,
    AgentTask,
    Alert,
    Entities,
    HistoricalContextItem,
    Priority,
)
from alertswarm.planner.prompts import (
    FOLLOWUP_PLAN_PROMPT_TEMPLATE,
    INITIAL_PLAN_PROMPT_TEMPLATE,
    INVESTIGATION_OBJECTIVE,
    SYNTHESIS_PROMPT_TEMPLATE,
)

logger = structlog.get_logger()

# Bound on serialized finding data included in prompts
MAX_FINDING_DATA_CHARS = 1500


class TaskPlanner:
    """Decides which tasks to run next and writes the final report.

    The LLM is optional. Without one, planning raises ``PlannerError`` (the
    orchestrator then applies its deterministic fallback) and synthesis
    produces a plain-text summary of the findings.
    """

    def __init__(
        self,
        llm: Optional[LLMCompletionService] = None,
        *,
        timeout_seconds: float = 60.0,
    ):
        self._llm = llm
        self._timeout = timeout_seconds

    @property
    def available(self) -> bool:
        return self._llm is not None

    async def plan_initial(self, alert: Alert, entities: Entities) -> list[AgentTask]:
        """Plan the first round of tasks.

        Raises:
            PlannerError: If the LLM is unavailable, times out or errors.
        """
        prompt = INITIAL_PLAN_PROMPT_TEMPLATE.format(
            objective=INVESTIGATION_OBJECTIVE,
            alert_summary=alert.to_summary(),
            entities=_format_entities(entities),
        )
        text = await self._complete(prompt, purpose="initial_plan")
        return parse_task_plan(text)

    async def plan_followup(
        self,
        alert: Alert,
        findings: Sequence[AgentResult],
        log: Sequence[str],
    ) -> list[AgentTask]:
        """Plan follow-up tasks. An empty list means the investigation is done.

        Raises:
            PlannerError: If the LLM is unavailable, times out or errors.
        """
        prompt = FOLLOWUP_PLAN_PROMPT_TEMPLATE.format(
            alert_summary=alert.to_summary(),
            findings=_format_findings(findings, include_data=True),
            log="\n".join(log),
        )
        text = await self._complete(prompt, purpose="followup_plan")
        return parse_task_plan(text)

    async def synthesize_report(
        self,
        alert: Alert,
        findings: Sequence[AgentResult],
        historical_context: Sequence[HistoricalContextItem],
        log: Sequence[str],
    ) -> str:
        """Write the final investigation report.

        Falls back to a plain summary when the LLM is unavailable or fails.
        """
        if self._llm is None:
            return build_fallback_report(alert, findings, historical_context, "AI service unavailable")

        prompt = SYNTHESIS_PROMPT_TEMPLATE.format(
            alert_summary=alert.to_summary(),
            findings=_format_findings(findings, include_data=False),
            historical_context=_format_context(historical_context),
            log="\n".join(log),
        )
        try:
            text = await self._complete(prompt, purpose="synthesis")
        except PlannerError as e:
            logger.warning("report_synthesis_failed", alert_id=alert.id, error=str(e))
            return build_fallback_report(alert, findings, historical_context, "AI report generation failed")

        if not text.strip():
            return build_fallback_report(alert, findings, historical_context, "AI returned an empty report")
        return text.strip()

    async def _complete(self, prompt: str, *, purpose: str) -> str:
        if self._llm is None:
            raise PlannerError("LLM completion service is not configured")

        try:
            completion = await asyncio.wait_for(self._llm.complete(prompt), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            logger.warning("llm_completion_timeout", purpose=purpose, timeout_seconds=self._timeout)
            raise PlannerError(f"LLM call timed out after {self._timeout}s") from e
        except Exception as e:
            logger.warning("llm_completion_failed", purpose=purpose, error=str(e))
            raise PlannerError(f"LLM call failed: {e}") from e

        logger.debug(
            "llm_completion_received",
            purpose=purpose,
            length=len(completion.text),
            usage=completion.usage or None,
        )
        return completion.text


def _format_entities(entities: Entities) -> str:
    lines = [
        f"- {name}: {value}"
        for name, value in (("ip", entities.ip), ("username", entities.username), ("hash", entities.hash))
        if value
    ]
    return "\n".join(lines) if lines else "- none extracted"


def _format_findings(findings: Sequence[AgentResult], *, include_data: bool) -> str:
    if not findings:
        return "No findings yet."

    lines = []
    for finding in findings:
        lines.append(f"[{finding.agent}] ({finding.status.value}) {finding.summary}")
        if include_data and finding.data is not None:
            data = json.dumps(finding.data, default=str)
            if len(data) > MAX_FINDING_DATA_CHARS:
                data = data[:MAX_FINDING_DATA_CHARS] + "..."
            lines.append(f"  data: {data}")
    return "\n".join(lines)


def _format_context(items: Sequence[HistoricalContextItem]) -> str:
    if not items:
        return "No similar historical cases found."
    return "\n".join(item.to_prompt_line() for item in items)


def build_fallback_report(
    alert: Alert,
    findings: Sequence[AgentResult],
    historical_context: Sequence[HistoricalContextItem],
    reason: str,
) -> str:
    """Plain-text report assembled directly from the findings."""
    lines = [
        f"Investigation report for alert {alert.id}: {alert.title}",
        f"({reason}; raw findings below)",
        "",
        "Findings:",
    ]
    if findings:
        lines.extend(f"- [{f.agent}] {f.summary}" for f in findings)
    else:
        lines.append("- none")

    if historical_context:
        lines.append("")
        lines.append("Historical context:")
        lines.extend(item.to_prompt_line() for item in historical_context)

    return "\n".join(lines)


def _sanitize_json_string(json_str: str) -> str:
    """Escape literal newlines, carriage returns and tabs inside JSON strings.

    LLMs sometimes return JSON with unescaped control characters in string
    values, which json.loads rejects.
    """
    result = []
    in_string = False
    escape_next = False

    for char in json_str:
        if escape_next:
            result.append(char)
            escape_next = False
            continue

        if char == "\\":
            result.append(char)
            escape_next = True
            continue

        if char == '"':
            in_string = not in_string
            result.append(char)
            continue

        if in_string and char == "\n":
            result.append("\\n")
        elif in_string and char == "\r":
            result.append("\\r")
        elif in_string and char == "\t":
            result.append("\\t")
        else:
            result.append(char)

    return "".join(result)


def _first_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` block in the text, if any."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False
    for i in range(start, len(text)):
        char = text[i]
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def _extract_json(response_text: str) -> Optional[dict[str, Any]]:
    # First balanced object wins; a fenced ```json block is the fallback
    candidates = []
    raw = _first_json_object(response_text)
    if raw:
        candidates.append(raw)
    fenced = re.search(r"```json\s*(.*?)\s*```", response_text, re.DOTALL)
    if fenced and fenced.group(1) not in candidates:
        candidates.append(fenced.group(1))

    for candidate in candidates:
        try:
            parsed = json.loads(_sanitize_json_string(candidate))
        except json.JSONDecodeError as e:
            logger.debug("plan_json_decode_failed", error=str(e), content=candidate[:500])
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _parse_priority(value: Any) -> Priority:
    try:
        return Priority(str(value).lower())
    except ValueError:
        return Priority.MEDIUM


def parse_task_plan(response_text: str) -> list[AgentTask]:
    """Parse planner output into tasks.

    Expects ``{"tasks": [{"type": ..., "params": {...}, "priority": ...}]}``
    somewhere in the text. Anything unparseable yields an empty plan.
    """
    data = _extract_json(response_text)
    if data is None:
        logger.warning("plan_parse_failed", response_text=response_text[:1000])
        return []

    raw_tasks = data.get("tasks")
    if not isinstance(raw_tasks, list):
        logger.warning("plan_missing_tasks", keys=sorted(data))
        return []

    tasks: list[AgentTask] = []
    for raw in raw_tasks:
        if not isinstance(raw, dict) or not isinstance(raw.get("type"), str) or not raw["type"].strip():
            logger.debug("plan_task_skipped", task=raw)
            continue
        params = raw.get("params")
        tasks.append(AgentTask(
            type=raw["type"].strip(),
            params=params if isinstance(params, dict) else {},
            priority=_parse_priority(raw.get("priority", Priority.MEDIUM.value)),
        ))
    return tasks
