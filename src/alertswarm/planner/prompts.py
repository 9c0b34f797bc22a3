"""Prompts for the task planner and report synthesis.

Templates are rendered with ``str.format``; literal braces are doubled.
"""

INVESTIGATION_OBJECTIVE = (
    "Determine whether this alert is a true positive, what the affected "
    "entities are, and whether any of them are known to be malicious."
)

AVAILABLE_TASKS = """## Available Tasks

- **check_ip**: Reputation lookup across VirusTotal, AbuseIPDB and AlienVault OTX
  - params: {{"ip": "<address>"}}
- **query_logs**: Network events touching an IP in a recent time window
  - params: {{"ip": "<address>", "hours": <1-720, default 24>}}
- **check_hash**: File reputation lookup on VirusTotal
  - params: {{"hash": "<md5/sha1/sha256>"}}
- **check_user**: Directory lookup, active sessions, login history and risk score
  - params: {{"username": "<name or email>"}}
"""

RESPONSE_FORMAT = """## Response Format

Respond with a JSON object only:
```json
{{
  "tasks": [
    {{"type": "check_ip", "params": {{"ip": "203.0.113.7"}}, "priority": "high"}}
  ]
}}
```
Priority is one of "high", "medium", "low"."""

INITIAL_PLAN_PROMPT_TEMPLATE = """You are the lead investigator coordinating a team of specialist security agents.
Plan the first round of an investigation into the alert below.

## Objective
{objective}

## Alert
{alert_summary}

## Extracted Entities
{entities}

""" + AVAILABLE_TASKS + """
Pick the tasks that will gather the most useful evidence. Only use entity
values that appear in the alert.

""" + RESPONSE_FORMAT

FOLLOWUP_PLAN_PROMPT_TEMPLATE = """You are the lead investigator coordinating a team of specialist security agents.
Review the evidence gathered so far and decide whether more investigation is needed.

## Alert
{alert_summary}

## Findings So Far
{findings}

## Investigation Log
{log}

""" + AVAILABLE_TASKS + """
Request follow-up tasks only for new leads (for example an IP or user that
surfaced in the logs but has not been checked yet). Do not repeat a task
that already ran with the same parameters. If the evidence is sufficient,
return an empty task list: {{"tasks": []}}

""" + RESPONSE_FORMAT

SYNTHESIS_PROMPT_TEMPLATE = """You are the lead investigator. Review the findings from your team of specialist agents.

## Alert
{alert_summary}

## Team Findings
{findings}

## Historical Context
{historical_context}

## Investigation Log
{log}

Write a concise executive summary of the investigation, then a final verdict
(True Positive / False Positive / Needs Review) with the key evidence behind it
and recommended next steps."""
