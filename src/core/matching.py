"""Keyword normalization and matching (core domain)."""

from __future__ import annotations

from typing import Iterable

from core.models import JobCandidate


def normalize_keyword(keyword: str) -> str:
    """Return the canonical stored form of a keyword."""

    return keyword.strip().lower()


def job_haystack(job: JobCandidate) -> str:
    return f"{job.title} {job.company} {job.source}".lower()


def matches_keyword(job: JobCandidate, keyword: str) -> bool:
    """Case-insensitive substring match against title, company, and source.

    This is containment, not word matching: "java" matches "JavaScript".
    """

    needle = normalize_keyword(keyword)
    if not needle:
        return False
    return needle in job_haystack(job)


def matches_any_keyword(job: JobCandidate, keywords: Iterable[str]) -> bool:
    return any(matches_keyword(job, keyword) for keyword in keywords)
