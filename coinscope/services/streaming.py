from __future__ import annotations

from typing import Any

from coinscope.models.events import EventType, PipelineEvent


def query_expanded(
    original_query: str,
    synonyms: list[str],
    *,
    fallback_used: bool = False,
) -> PipelineEvent:
    return PipelineEvent(
        event=EventType.QUERY_EXPANDED,
        data={
            "original_query": original_query,
            "synonyms": synonyms,
            "fallback_used": fallback_used,
        },
    )


def query_rejected(message: str) -> PipelineEvent:
    return PipelineEvent(event=EventType.QUERY_REJECTED, data={"message": message})


def assets_detected(
    assets: list[dict[str, Any]],
    unrecognized: list[str],
    *,
    resolver: str,
) -> PipelineEvent:
    return PipelineEvent(
        event=EventType.ASSETS_DETECTED,
        data={"assets": assets, "unrecognized": unrecognized, "resolver": resolver},
    )


def search_completed(queries_run: int, hits: list[dict[str, Any]]) -> PipelineEvent:
    return PipelineEvent(
        event=EventType.SEARCH_COMPLETED,
        data={"queries_run": queries_run, "results_count": len(hits), "hits": hits},
    )


def scrape_completed(requested: int, scraped: int, **kwargs: Any) -> PipelineEvent:
    return PipelineEvent(
        event=EventType.SCRAPE_COMPLETED,
        data={"requested": requested, "scraped": scraped, "failed": requested - scraped, **kwargs},
    )


def coverage_computed(coverage: dict[str, int], *, stage: str) -> PipelineEvent:
    missing = [name for name, count in coverage.items() if count == 0]
    return PipelineEvent(
        event=EventType.COVERAGE_COMPUTED,
        data={"stage": stage, "coverage": dict(coverage), "missing": missing},
    )


def backfill_started(assets: list[str]) -> PipelineEvent:
    return PipelineEvent(event=EventType.BACKFILL_STARTED, data={"assets": assets})


def backfill_completed(added: list[dict[str, Any]]) -> PipelineEvent:
    return PipelineEvent(
        event=EventType.BACKFILL_COMPLETED,
        data={"added_count": len(added), "added": added},
    )


def synthesis_started(sources_count: int) -> PipelineEvent:
    return PipelineEvent(event=EventType.SYNTHESIS_STARTED, data={"sources_count": sources_count})


def research_complete(
    report: str,
    sources: list[dict[str, Any]],
    *,
    all_assets_covered: bool,
    runtime_ms: int | None = None,
) -> PipelineEvent:
    data: dict[str, Any] = {
        "report": report,
        "sources": sources,
        "all_assets_covered": all_assets_covered,
    }
    if runtime_ms is not None:
        data["runtime_ms"] = runtime_ms
    return PipelineEvent(event=EventType.RESEARCH_COMPLETE, data=data)


def error(message: str, stage: str | None = None) -> PipelineEvent:
    data: dict[str, Any] = {"message": message}
    if stage:
        data["stage"] = stage
    return PipelineEvent(event=EventType.ERROR, data=data)
