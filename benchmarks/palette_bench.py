#!/usr/bin/env python3
"""
Minimal benchmark for cover palette extraction at different sampling qualities.

Usage:
    python benchmarks/palette_bench.py <path-to-cover.jpg>

Runs N iterations per quality setting and reports wall-clock time and the palette
each setting produced, so the cost of a lower `palette_quality` can be weighed
against how much the colors drift.
"""
import os
import sys
import time
from io import BytesIO
from PIL import Image

# run from a source checkout: make the repo root importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from palette import extract_palette  # noqa: E402

QUALITIES = (1, 5, 10, 20)

def time_extraction(img_bytes, quality, iterations=20):
    t0 = time.time()
    colors = None
    for _ in range(iterations):
        colors = extract_palette(img_bytes, quality=quality)
    return time.time() - t0, colors

def main():
    if len(sys.argv) < 2:
        print("Usage: python benchmarks/palette_bench.py cover.jpg")
        return
    path = sys.argv[1]
    img = Image.open(path).convert('RGB')
    buf = BytesIO(); img.save(buf, format='JPEG', quality=90); img_bytes = buf.getvalue()
    print(f'Loaded {img.size[0]}x{img.size[1]} cover, running benchmarks...')
    iterations = 20
    for quality in QUALITIES:
        elapsed, colors = time_extraction(img_bytes, quality, iterations=iterations)
        print(f'quality={quality}: {iterations} iterations took {elapsed:.3f}s -> {", ".join(colors)}')

if __name__ == '__main__':
    main()
