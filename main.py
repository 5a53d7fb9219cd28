"""coinscope - crypto research pipeline

Simple CLI for running one research question.
"""

import argparse
import asyncio
import sys

from coinscope.agents.orchestrator import CryptoResearchOrchestrator
from coinscope.config import ConfigurationError, settings
from coinscope.services.asset_catalog import CatalogUnavailableError
from coinscope.services.logger import configure_logging

DEFAULT_QUERY = "I want Technical analysis on Shiba Inu and Dogecoin"


async def run_research(query: str, model: str | None = None, resolver: str | None = None):
    """Run research on the given query."""
    print(f"Research query: {query}")
    print("-" * 50)

    orchestrator = CryptoResearchOrchestrator.from_settings(
        synthesis_model=model,
        resolver_mode=resolver,
    )

    async for event in orchestrator.research(query):
        event_type = event.event.value
        data = event.data

        if event_type == "query_rejected":
            print(data.get("message", ""))

        elif event_type == "query_expanded":
            synonyms = data.get("synonyms", [])
            label = " (fallback)" if data.get("fallback_used") else ""
            print(f"\n[*] Query variations{label}:")
            for i, synonym in enumerate(synonyms, 1):
                print(f"  {i}. {synonym}")

        elif event_type == "assets_detected":
            names = [asset.get("name") for asset in data.get("assets", [])]
            print(f"\n[*] Assets ({data.get('resolver')}): {', '.join(names) or 'none'}")
            if data.get("unrecognized"):
                print(f"    Unrecognized: {', '.join(data['unrecognized'])}")

        elif event_type == "search_completed":
            print(f"\n[~] Search: {data.get('results_count')} unique URLs from {data.get('queries_run')} queries")

        elif event_type == "scrape_completed":
            print(f"  [+] Scraped {data.get('scraped')}/{data.get('requested')} pages")

        elif event_type == "coverage_computed":
            coverage = ", ".join(f"{name}={count}" for name, count in data.get("coverage", {}).items())
            print(f"  [+] Coverage ({data.get('stage')}): {coverage or 'n/a'}")

        elif event_type == "backfill_started":
            print(f"\n[~] Backfilling: {', '.join(data.get('assets', []))}")

        elif event_type == "backfill_completed":
            print(f"  [+] Backfill added {data.get('added_count')} sources")

        elif event_type == "synthesis_started":
            print("\n[+] Synthesizing report...")

        elif event_type == "research_complete":
            print("\n\n[*] Research Complete!")
            print(f"   Runtime: {data.get('runtime_ms')}ms")
            print(f"   Sources: {len(data.get('sources', []))}")
            if not data.get("all_assets_covered"):
                print("   Note: not every requested asset is covered by the sources")
            print(f"\n{'='*50}")
            print("REPORT:")
            print(f"{'='*50}")
            print(data.get("report", ""))

        elif event_type == "error":
            print(f"\n[!] Error: {data.get('message', 'Unknown error')}")


def main():
    parser = argparse.ArgumentParser(description="coinscope crypto research")
    parser.add_argument("query", nargs="?", default=DEFAULT_QUERY, help="Research question")
    parser.add_argument("--model", "-m", help="Synthesis model (default: from config)")
    parser.add_argument(
        "--resolver",
        choices=["auto", "pattern", "catalog"],
        help="Asset resolver (default: from config)",
    )
    parser.add_argument("--log-level", help="Console log level (default: from config)")

    args = parser.parse_args()
    configure_logging(args.log_level)

    try:
        settings.validate_for_run()
        asyncio.run(run_research(args.query, args.model, args.resolver))
    except (ConfigurationError, CatalogUnavailableError) as exc:
        print(f"[!] {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
