"""
Run margin detection over scanned page images.

Usage:
  python scripts/margin_crop.py page1.jpg page2.png
  python scripts/margin_crop.py scans/*.jpg --out crops/

Prints the split column for every readable image; with --out the cropped
margin strips are written there as PNG.
"""
import argparse
import os
import sys

from utils.margin_segmenter import encode_png, margin_crop_images


def _read_files(paths):
    for path in paths:
        try:
            with open(path, 'rb') as fh:
                yield os.path.basename(path), fh.read()
        except OSError as e:
            print(f"Cannot read {path}: {e}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Detect the left margin line of scanned pages")
    parser.add_argument('images', nargs='+', help='image files (JPEG/PNG)')
    parser.add_argument('--out', help='directory to write cropped margin strips to')
    args = parser.parse_args(argv)

    results = margin_crop_images(_read_files(args.images))
    if args.out:
        os.makedirs(args.out, exist_ok=True)

    for name in sorted(results):
        crop = results[name]
        note = "" if crop.found else "  (no reliable margin found)"
        print(f"{name}: crop_width={crop.crop_width} margin_column_sum={crop.margin_column_sum}{note}")
        if args.out:
            data = encode_png(crop.crop)
            if data:
                stem = os.path.splitext(name)[0]
                with open(os.path.join(args.out, f"{stem}_margin.png"), 'wb') as fh:
                    fh.write(data)

    skipped = len(args.images) - len(results)
    if skipped:
        print(f"Skipped {skipped} unreadable file(s)")
    return 0 if results else 1

if __name__ == "__main__":
    sys.exit(main())
