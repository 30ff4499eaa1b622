#!/usr/bin/env python3
"""
Stream Generation Demo

Posts one generation request to a running API and prints the event stream
as it arrives, the same way the web client consumes it.

Usage:
    python scripts/utilities/stream_generation.py "a red castle" --model fast --num-images 2
"""

import argparse
import sys

import requests

from forge.core.sse_parser import SSEStreamParser


def stream_generation(base_url: str, body: dict) -> int:
    print(f"🚀 POST {base_url}/api/v1/generate")
    parser = SSEStreamParser()

    with requests.post(f"{base_url}/api/v1/generate", json=body, stream=True, timeout=300) as response:
        if not response.ok:
            print(f"❌ HTTP {response.status_code}: {response.text[:200]}")
            return 1

        for chunk in response.iter_content(chunk_size=1024):
            for event, data in parser.feed(chunk):
                if event == "progress":
                    print(f"  [{data.get('progress', 0):3d}%] {data.get('message')}")
                elif event == "complete":
                    print(f"✅ {len(data['imageUrls'])} image(s) in {data['elapsed']}s ({data['model']})")
                    return 0
                elif event == "error":
                    print(f"❌ {data['error']}")
                    return 1

    print("⚠️ Stream ended without a terminal event")
    return 1


def main():
    parser = argparse.ArgumentParser(description="Stream one generation run")
    parser.add_argument("prompt")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--model", default="pro", choices=["fast", "pro"])
    parser.add_argument("--resolution", default="1K")
    parser.add_argument("--aspect-ratio", default="1:1")
    parser.add_argument("--num-images", type=int, default=1)
    parser.add_argument("--style-image", action="append", default=[], help="Reference image URL (repeatable)")
    args = parser.parse_args()

    body = {
        "prompt": args.prompt,
        "model": args.model,
        "resolution": args.resolution,
        "aspectRatio": args.aspect_ratio,
        "numImages": args.num_images,
        "styleImages": [{"url": url, "strength": 1.0} for url in args.style_image],
    }
    sys.exit(stream_generation(args.base_url.rstrip("/"), body))


if __name__ == "__main__":
    main()
