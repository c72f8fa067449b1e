"""
Pipeline Runner
===============

Command-line entry point for the Cadence QA pipeline.

    python run_pipeline.py generate --input "Create an NFT collection with minting"
    python run_pipeline.py detect contracts/MyNFT.cdc
    python run_pipeline.py refine contracts/MyNFT.cdc --request "Add a burn function"
    python run_pipeline.py explain contracts/MyNFT.cdc
    python run_pipeline.py fallback --input "Create a fungible token"

`generate`, `refine` and `explain` need OPENAI_API_KEY (in .env or the
environment); `detect` and `fallback` run offline.
"""

import argparse
import json
import os
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from cadence_qa import (
    ConfigError,
    FallbackGenerator,
    GenerationError,
    GenerationOrchestrator,
    OpenAIGenerator,
    PipelineTelemetry,
    detect_errors,
    load_config,
)


# Default request when `generate` / `fallback` get no --input
USER_INPUT = """Create an NFT collection where the owner can mint NFTs with a name and description."""


def ensure(path: str):
    """Ensure directory exists"""
    os.makedirs(path, exist_ok=True)


def read_code(path: str) -> str:
    code_path = Path(path)
    if not code_path.exists():
        print(f"❌ File not found: {path}")
        sys.exit(1)
    with open(code_path, "r", encoding="utf8") as f:
        return f.read()


def save_outputs(outdir: str, name: str, code: str, report: dict):
    ensure(outdir)
    code_path = f"{outdir}/{name}.cdc"
    report_path = f"{outdir}/report.json"
    with open(code_path, "w", encoding="utf8") as f:
        f.write(code)
    with open(report_path, "w", encoding="utf8") as f:
        json.dump(report, f, indent=2)
    print(f"\n📦 Outputs saved:")
    print(f"   • Contract: {code_path}")
    print(f"   • Report: {report_path}")


def preview(code: str, limit: int = 20):
    lines = code.split("\n")
    print(f"\n📄 Contract Preview (first {limit} lines):")
    for i, line in enumerate(lines[:limit], 1):
        print(f"   {i:3d} | {line}")
    if len(lines) > limit:
        print(f"   ... ({len(lines) - limit} more lines)")


def build_orchestrator(config, telemetry) -> GenerationOrchestrator:
    try:
        generator = OpenAIGenerator(config.llm, debug=config.telemetry.verbose)
    except GenerationError as e:
        print(f"❌ {e.message}")
        sys.exit(1)
    return GenerationOrchestrator(generator, config=config, telemetry=telemetry)


def cmd_generate(args, config, telemetry):
    user_input = args.input or USER_INPUT
    print("\n" + "=" * 80)
    print("GENERATING CADENCE CONTRACT")
    print("=" * 80)
    print("\n📝 USER INPUT:")
    print(user_input)

    orchestrator = build_orchestrator(config, telemetry)
    result = orchestrator.generate_code_with_validation(user_input)
    score = result.validation.quality_score

    print("\n📊 Result:")
    print(f"   • Final state: {result.final_state}")
    print(f"   • Attempts: {result.attempts}")
    print(f"   • Quality score: {score.overall}/100")
    print(f"   • Fallback used: {'yes' if result.fallback_used else 'no'}")
    if result.rejected:
        print(f"   • Rejected: {result.rejection_reason}")
    preview(result.code)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    save_outputs(f"{args.output_dir}/{timestamp}", "contract", result.code, result.to_dict())
    return 0 if not result.rejected else 2


def cmd_detect(args, config, telemetry):
    code = read_code(args.path)
    detection = detect_errors(code, args.contract_type, telemetry=telemetry)

    if args.json:
        print(json.dumps(detection.to_dict(), indent=2))
        return 0

    print(f"\n🔍 {args.path} ({detection.contract_type})")
    print(f"   • Completeness score: {detection.completeness_score}/100")
    print(f"   • Critical: {detection.critical_errors}  Warnings: {detection.warning_errors}  Info: {detection.info_errors}")
    for error in detection.errors:
        fixable = " [auto-fixable]" if error.auto_fixable else ""
        print(f"   - line {error.location.line}: [{error.severity.value}] {error.message}{fixable}")
    if detection.recommendations:
        print("\n💡 Recommendations:")
        for recommendation in detection.recommendations:
            print(f"   • {recommendation}")
    return 1 if detection.critical_errors else 0


def cmd_refine(args, config, telemetry):
    code = read_code(args.path)
    orchestrator = build_orchestrator(config, telemetry)
    refined = orchestrator.refine_code(code, args.request)
    if refined == code:
        print("⚠️  Refinement did not pass validation; original code kept")
    if args.output:
        with open(args.output, "w", encoding="utf8") as f:
            f.write(refined)
        print(f"   📄 Saved: {args.output}")
    else:
        print(refined)
    return 0


def cmd_explain(args, config, telemetry):
    code = read_code(args.path)
    orchestrator = build_orchestrator(config, telemetry)
    print(orchestrator.explain_code(code, args.question))
    return 0


def cmd_fallback(args, config, telemetry):
    user_input = args.input or USER_INPUT
    result = FallbackGenerator(telemetry=telemetry).generate(user_input)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0
    print(f"\n🧩 Template: {result.template_id} ({result.contract_type.category.value})")
    print(f"   • Contract name: {result.contract_name}")
    print(f"   • Confidence: {result.confidence:.2f}")
    print(f"   • Reason: {result.reason}")
    print(result.code)
    return 0 if result.success else 1


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="Quality-assured Cadence contract generation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=str, help="YAML config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Print pipeline progress logs")
    parser.add_argument("--telemetry-out", type=str, help="Write a telemetry summary JSON on exit")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate a validated contract")
    generate.add_argument("--input", "-i", type=str, help="Contract description (defaults to USER_INPUT)")
    generate.add_argument("--output-dir", type=str, default="pipeline_outputs", help="Where to save outputs")
    generate.set_defaults(handler=cmd_generate)

    detect = subparsers.add_parser("detect", help="Run error detection on a Cadence file")
    detect.add_argument("path", type=str)
    detect.add_argument("--contract-type", type=str, help="nft, fungible-token, dao, marketplace, defi, utility")
    detect.add_argument("--json", action="store_true", help="Print the full result as JSON")
    detect.set_defaults(handler=cmd_detect)

    refine = subparsers.add_parser("refine", help="Refine a Cadence file")
    refine.add_argument("path", type=str)
    refine.add_argument("--request", "-r", type=str, required=True, help="What to change")
    refine.add_argument("--output", "-o", type=str, help="Write the refined code here")
    refine.set_defaults(handler=cmd_refine)

    explain = subparsers.add_parser("explain", help="Explain a Cadence file")
    explain.add_argument("path", type=str)
    explain.add_argument("--question", "-q", type=str)
    explain.set_defaults(handler=cmd_explain)

    fallback = subparsers.add_parser("fallback", help="Produce a template contract without the model")
    fallback.add_argument("--input", "-i", type=str)
    fallback.add_argument("--json", action="store_true")
    fallback.set_defaults(handler=cmd_fallback)

    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"❌ {e.message}")
        return 1

    telemetry_config = config.telemetry
    if args.verbose or args.telemetry_out:
        telemetry_config = replace(
            telemetry_config,
            verbose=args.verbose or telemetry_config.verbose,
            flush_path=args.telemetry_out or telemetry_config.flush_path,
        )

    with PipelineTelemetry(telemetry_config) as telemetry:
        return args.handler(args, config, telemetry)


if __name__ == "__main__":
    sys.exit(main())
