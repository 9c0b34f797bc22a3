"""Task planning and report synthesis."""

from alertswarm.planner.planner import TaskPlanner, build_fallback_report, parse_task_plan

__all__ = ["TaskPlanner", "build_fallback_report", "parse_task_plan"]
