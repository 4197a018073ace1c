import asyncio
import logging
import sys
from typing import Optional

from .models import Query
from .pipeline import ScoutPipeline
from .reporting import build_summary_text


async def run_query(text: str, output_file: Optional[str] = None, pipeline: Optional[ScoutPipeline] = None) -> str:
    print(f"Processing query: {text}")

    pipeline = pipeline or ScoutPipeline()
    result = await pipeline.run(Query(text=text))

    print("\n" + "=" * 50)
    print("RESULT")
    print("=" * 50)
    print(result.output)

    if result.report is not None:
        print("\n" + "=" * 50)
        print("SUMMARY")
        print("=" * 50)
        print(build_summary_text(result.report))

    if output_file:
        with open(output_file, "w") as f:
            f.write(result.output)
        print(f"Results saved to {output_file}")

    return result.output


def main():
    logging.basicConfig(level=logging.INFO)

    # Format: scout "query text" [--output FILE]
    output_file = None
    args = sys.argv[1:]
    if "--output" in args:
        idx = args.index("--output")
        output_file = args[idx + 1] if idx + 1 < len(args) else None
        args = args[:idx] + args[idx + 2:]

    if args:
        text = " ".join(args)
    else:
        print("Scout - Interactive Mode")
        print("=" * 40)
        try:
            text = input("Ask about a token, contract or wallet: ").strip()
        except KeyboardInterrupt:
            print("\nOperation cancelled by user.")
            sys.exit(0)

    if not text:
        print("Error: a query is required.")
        sys.exit(1)

    try:
        asyncio.run(run_query(text, output_file))
    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")
        sys.exit(0)


if __name__ == "__main__":
    main()
