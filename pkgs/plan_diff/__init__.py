"""Attribute-level plan diffs between prior and proposed resource states."""

from .diff import ROOT_PATH, AttributeChange, PlanResult, change_set, diff  # noqa: F401

__all__ = ["ROOT_PATH", "AttributeChange", "PlanResult", "change_set", "diff"]
