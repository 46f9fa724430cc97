"""Utility for manually pushing a Java file through the sandbox pipeline.

Handy on a host where the JDK is installed to check what a submission
returns without going through the HTTP endpoint. The full
:class:`dispatcher.snippet.SubmissionResult` is printed as JSON.

Example::

    python tools/manual_runner.py Hello.java --execute-timeout 5

Pass ``--repeat 2`` to see the second run served from the artifact cache.
Use ``--no-probe`` to launch the class directly without memory sampling.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from dispatcher.artifact_cache import ArtifactCache
from dispatcher.file_manager import WorkspaceManager
from dispatcher.pipeline import CompilePipeline
from runner.compiler import JavaCompiler
from runner.executor import JavaExecutor


def build_pipeline(args: argparse.Namespace) -> CompilePipeline:
    """Create a pipeline honouring the CLI overrides."""

    return CompilePipeline(
        workspace_manager=WorkspaceManager(args.workspace_root),
        cache=ArtifactCache(),
        compiler=JavaCompiler(timeout=args.compile_timeout),
        executor=JavaExecutor(
            timeout=args.execute_timeout,
            use_memory_probe=args.probe,
        ),
    )


def parse_args() -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "source",
        type=Path,
        help="path to the .java file to submit",
    )
    parser.add_argument(
        "--compile-timeout",
        type=int,
        default=None,
        help="compilation timeout in seconds",
    )
    parser.add_argument(
        "--execute-timeout",
        type=int,
        default=None,
        help="execution timeout in seconds",
    )
    parser.add_argument(
        "--workspace-root",
        type=Path,
        default=None,
        help="directory under which workspaces are created",
    )
    parser.add_argument(
        "--probe",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="run through the memory probe (default: true)",
    )
    parser.add_argument(
        "--repeat",
        type=int,
        default=1,
        help="submit the same source this many times",
    )
    return parser.parse_args()


def main() -> None:
    """CLI entry point."""

    args = parse_args()
    source_text = args.source.read_text(encoding="utf-8")
    pipeline = build_pipeline(args)
    for i in range(max(1, args.repeat)):
        result = pipeline.compile_and_run(source_text)
        print(f"=== run {i + 1} ===")
        print(json.dumps(result.model_dump(mode="json"),
                         indent=2,
                         ensure_ascii=False))


if __name__ == "__main__":
    main()
