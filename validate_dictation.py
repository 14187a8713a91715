"""
Validate a Batch of Imaging-Order Dictations

Runs every dictation in a JSON file (or the built-in samples) through the
ValidationEngine and prints a per-order verdict plus a summary. Each entry
is validated as a first attempt of its own order.

Input Format (JSON list):
    [
        {"order_id": "ORD-1", "specialty": "Orthopedics",
         "dictation": "Right shoulder pain for 6 weeks...",
         "age": 52, "gender": "M"}
    ]

Usage:
    python validate_dictation.py
    python validate_dictation.py --input dictations.json --output results.json
    python validate_dictation.py --provider mock --no-cache

Author: Shubham Singh
Date: December 2025
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

from loguru import logger

from clinical_validation import (
    AttemptHistory,
    EngineConfiguration,
    PatientContext,
    ValidationEngine,
)
from clinical_validation.observability import setup_logging

SAMPLE_DICTATIONS: List[Dict[str, Any]] = [
    {
        "order_id": "SAMPLE-1",
        "specialty": "Family Medicine",
        "dictation": "Follow-up chest X-ray, no new symptoms.",
        "age": 67,
        "gender": "F",
    },
    {
        "order_id": "SAMPLE-2",
        "specialty": "Orthopedics",
        "dictation": (
            "Right shoulder pain for 8 weeks after lifting injury, painful arc and weakness "
            "with abduction, failed physical therapy. Request MRI shoulder without contrast "
            "to evaluate rotator cuff tear."
        ),
        "age": 54,
        "gender": "M",
    },
    {
        "order_id": "SAMPLE-3",
        "specialty": "Emergency Medicine",
        "dictation": "Right lower quadrant abdominal pain since this morning, fever. CT abdomen.",
        "age": 23,
        "gender": "F",
    },
    {
        "order_id": "SAMPLE-4",
        "specialty": "Internal Medicine",
        "dictation": "Please image.",
    },
]


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate imaging-order dictations against appropriate-use knowledge",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Built-in samples with the configured provider (mock when no API key)
  python validate_dictation.py

  # Your own dictations, results written to a file
  python validate_dictation.py --input dictations.json --output results.json
        """,
    )
    parser.add_argument("--input", type=str, help="JSON file with a list of dictations")
    parser.add_argument("--output", type=str, help="Write results as JSON to this file")
    parser.add_argument(
        "--provider",
        type=str,
        choices=["anthropic", "openai", "gemini", "mock"],
        help="Override LLM_PROVIDER",
    )
    parser.add_argument("--env-file", type=str, help="Path to .env file")
    parser.add_argument("--no-cache", action="store_true", help="Bypass the knowledge cache")
    parser.add_argument("--log-level", type=str, default=None, help="Override LOG_LEVEL")
    return parser


def load_dictations(path: str) -> List[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of dictations")
    return data


def main() -> int:
    args = create_argument_parser().parse_args()

    # =========================================================================
    # STAGE 1: INITIALIZE ENGINE
    # =========================================================================
    print("\n" + "=" * 80)
    print("CLINICAL DICTATION VALIDATION - BATCH")
    print("=" * 80 + "\n")

    try:
        config = EngineConfiguration.from_environment(env_file=args.env_file)
        if args.provider:
            config.llm_provider = args.provider
        if args.log_level:
            config.log_level = args.log_level.upper()
        setup_logging(config.log_level, config.log_json)

        engine = ValidationEngine(config)
        if args.no_cache:
            engine.set_cache_enabled(False)
        print("[OK] Engine initialized")
        print(f"  - Provider: {engine.llm_client.provider_name}")
        print(f"  - Model: {engine.llm_client.model_name}")
        print()
    except Exception as e:
        print(f"[FAIL] Failed to initialize engine: {e}")
        return 1

    # =========================================================================
    # STAGE 2: LOAD DICTATIONS
    # =========================================================================
    try:
        dictations = load_dictations(args.input) if args.input else SAMPLE_DICTATIONS
    except (OSError, ValueError) as e:
        print(f"[FAIL] Could not read dictations: {e}")
        return 1
    print(f"Validating {len(dictations)} dictations...\n")

    # =========================================================================
    # STAGE 3: VALIDATE
    # =========================================================================
    results = []
    skipped = 0
    for idx, item in enumerate(dictations, 1):
        if not isinstance(item, dict):
            print(f"[{idx}/{len(dictations)}] [SKIP] Entry is not a JSON object: {item!r}\n")
            logger.warning(f"Skipping dictation entry {idx} | Type: {type(item).__name__}")
            skipped += 1
            continue

        order_id = str(item.get("order_id") or f"BATCH-{idx}")
        specialty = item.get("specialty", "")
        print(f"[{idx}/{len(dictations)}] {order_id} ({specialty or 'no specialty'})")
        print("-" * 80)

        try:
            result = engine.validate(
                order_id=order_id,
                dictation_text=item.get("dictation", ""),
                specialty=specialty,
                patient_context=PatientContext(age=item.get("age"), gender=item.get("gender")),
                prior_attempts=AttemptHistory(order_id),
            )
        except Exception as e:
            print(f"[FAIL] {e}\n")
            logger.exception(f"Error validating {order_id}")
            continue

        print(f"  Status:   {result.status.value} (score {result.compliance_score}/9)")
        print(f"  Feedback: {result.feedback}")
        codes = ", ".join(
            f"{c.code}{'*' if c.is_primary else ''}" for c in result.suggested_diagnosis_codes
        )
        if codes:
            print(f"  ICD-10:   {codes}")
        procedures = ", ".join(c.code for c in result.suggested_procedure_codes)
        if procedures:
            print(f"  CPT:      {procedures}")
        print()
        results.append({"order_id": order_id, "specialty": specialty, **result.to_dict()})

    # =========================================================================
    # STAGE 4: SAVE AND SUMMARIZE
    # =========================================================================
    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(results, f, indent=2)
        print(f"[OK] Saved {len(results)} results to: {output_path}")

    stats = engine.stats
    print("\n" + "=" * 80)
    print("Summary")
    print("=" * 80)
    print(f"  - Validations run:     {stats.validations}")
    print(f"  - Valid results:       {stats.valid_results}")
    print(f"  - Generation failures: {stats.generation_failures}")
    print(f"  - Malformed outputs:   {stats.malformed_outputs}")
    print(f"  - Skipped entries:     {skipped}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
