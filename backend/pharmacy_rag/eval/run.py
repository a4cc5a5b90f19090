from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from pharmacy_rag.ai.rag_service import RAGService
from pharmacy_rag.config.rag import get_rag_config
from pharmacy_rag.main import rag_service_lifespan


EVAL_FILE = Path(__file__).resolve().parents[2] / "tests" / "eval_questions.json"


@dataclass(frozen=True)
class EvalCase:
    query: str
    expected_intent: str
    expected_search_type: str | None = None


def _load_cases(path: Path) -> list[EvalCase]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    cases: list[EvalCase] = []
    for item in raw:
        expected_search_type = item.get("expected_search_type")
        cases.append(
            EvalCase(
                query=str(item["query"]),
                expected_intent=str(item["expected_intent"]),
                expected_search_type=str(expected_search_type) if expected_search_type else None,
            )
        )
    return cases


async def _run_case(service: RAGService, case: EvalCase) -> dict[str, Any]:
    result = await service.search(case.query)
    return {
        "intent": result.intent,
        "search_type": result.search_type,
        "top_score": result.top_score,
        "chunks": len(result.chunks),
    }


def _check(case: EvalCase, out: dict[str, Any]) -> bool:
    ok = out["intent"] == case.expected_intent
    # Cases without an expected search type only check intent routing.
    if case.expected_search_type is not None:
        ok &= out["search_type"] == case.expected_search_type
    return ok


async def run_cases(service: RAGService, cases: list[EvalCase]) -> int:
    passed = 0
    failed = 0
    for case in cases:
        out = await _run_case(service, case)
        ok = _check(case, out)
        status = "PASS" if ok else "FAIL"
        print(f"[{status}] {case.query}")
        if not ok:
            print(
                f"  got intent={out['intent']} search_type={out['search_type']} "
                f"top_score={out['top_score']:.3f} chunks={out['chunks']}"
            )
            print(f"  exp intent={case.expected_intent} search_type={case.expected_search_type}")
            failed += 1
        else:
            passed += 1

    total = passed + failed
    print(f"\nTotal: {total}  Passed: {passed}  Failed: {failed}")
    return failed


async def _main(path: Path, provider: str | None) -> int:
    cfg = get_rag_config()
    if provider:
        cfg = replace(cfg, embeddings_provider=provider)
    async with rag_service_lifespan(cfg) as service:
        return await run_cases(service, _load_cases(path))


def main() -> None:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper())

    parser = argparse.ArgumentParser(description="Run retrieval eval cases against the knowledge store.")
    parser.add_argument("--file", type=str, default=str(EVAL_FILE))
    parser.add_argument("--provider", choices=["ollama", "openrouter", "stub"], default=None)
    args = parser.parse_args()

    path = Path(args.file)
    if not path.exists():
        raise SystemExit(f"Eval file not found: {path}")

    failed = asyncio.run(_main(path, args.provider))
    if failed:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
