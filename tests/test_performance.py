#!/usr/bin/env python3
"""
Performance tests for ComicNorm
Tests basic throughput of signature sniffing, directory scanning and page numbering
"""

import os
import sys
import time
import tempfile
import shutil
from pathlib import Path

from helpers import RecordingNotifier, image_bytes, make_cbz

from comic_normalizer import BatchProcessor, ContainerType, PageNormalizer, sniff_container


def test_signature_sniffing_performance():
    """Sniffing only reads a 16 byte prefix, so large archives must not slow it down"""
    print("Testing signature sniffing performance...")

    temp_dir = tempfile.mkdtemp()
    try:
        test_files = []
        padding = b"\x00" * (1024 * 1024)
        for i in range(100):
            path = Path(temp_dir) / f"comic_{i:03d}.cbr"
            path.write_bytes(b"PK\x03\x04" + padding)
            test_files.append(path)

        start_time = time.time()
        for path in test_files:
            assert sniff_container(path) is ContainerType.ZIP
        elapsed = time.time() - start_time

        print(f"  Sniffed {len(test_files)} 1MB files in {elapsed:.3f}s")
        if elapsed > 2.0:
            print("  ⚠️  Warning: Signature sniffing performance may be suboptimal")
        else:
            print("  ✓ Signature sniffing performance is acceptable")
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)


def test_directory_scanning_performance():
    """Test batch directory scanning performance"""
    print("Testing batch directory scanning performance...")

    temp_dir = tempfile.mkdtemp()
    try:
        num_files = 600
        extensions = (".pdf", ".cbz", ".cbr")
        for i in range(num_files):
            Path(temp_dir, f"comic_{i:03d}{extensions[i % 3]}").write_bytes(b"x")

        # Files that must be ignored
        for i in range(50):
            Path(temp_dir, f"readme_{i}.txt").write_text("This should be ignored")
            Path(temp_dir, f"UPPER_{i}.CBZ").write_bytes(b"x")

        start_time = time.time()
        processor = BatchProcessor(temp_dir, RecordingNotifier())
        comic_files = processor.find_comic_files()
        elapsed = time.time() - start_time

        print(f"  Scanned directory with {num_files + 100} files in {elapsed:.3f}s")
        print(f"  Found {len(comic_files)} comic files (expected {num_files})")

        assert len(comic_files) == num_files, f"Expected {num_files} files, found {len(comic_files)}"

        if elapsed > 2.0:
            print("  ⚠️  Warning: Directory scanning performance may be suboptimal")
        else:
            print("  ✓ Directory scanning performance is acceptable")
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)


def test_page_numbering_performance():
    """Numbering 1200 JPEG pages only renames files, no image is re-encoded"""
    print("Testing page numbering performance...")

    temp_dir = tempfile.mkdtemp()
    try:
        raw_dir = Path(temp_dir) / "raw"
        pages_dir = Path(temp_dir) / "pages"
        raw_dir.mkdir()
        pages_dir.mkdir()

        jpeg = image_bytes("JPEG", size=(16, 16))
        num_pages = 1200
        for i in range(num_pages):
            (raw_dir / f"scan {i:05d}.jpg").write_bytes(jpeg)

        start_time = time.time()
        pages = PageNormalizer().normalize(raw_dir, pages_dir)
        elapsed = time.time() - start_time

        assert len(pages) == num_pages
        assert pages[-1].name == "1200.jpg"
        assert pages[998].name == "999.jpg"

        print(f"  Numbered {num_pages} pages in {elapsed:.3f}s")
        if elapsed > 10.0:
            print("  ⚠️  Warning: Page numbering performance may be suboptimal")
        else:
            print("  ✓ Page numbering performance is acceptable")
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)


def test_small_batch_conversion_time():
    """Convert a handful of small CBZ files end to end"""
    print("Testing small batch conversion time...")

    temp_dir = tempfile.mkdtemp()
    try:
        for i in range(5):
            make_cbz(os.path.join(temp_dir, f"issue_{i}.cbz"), {
                f"page_{p:02d}.png": image_bytes("PNG", size=(200, 300), color=(p * 10, 0, 0))
                for p in range(10)
            })

        start_time = time.time()
        result = BatchProcessor(temp_dir, RecordingNotifier()).process_all()
        elapsed = time.time() - start_time

        assert (result.found, result.processed) == (5, 5)
        print(f"  Converted {result.processed} archives (50 pages) in {elapsed:.3f}s")
        if elapsed > 30.0:
            print("  ⚠️  Warning: Batch conversion performance may be suboptimal")
        else:
            print("  ✓ Batch conversion performance is acceptable")
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)


def main():
    """Run all performance tests"""
    print("Running performance tests for ComicNorm...")
    print("=" * 60)

    tests = [
        test_signature_sniffing_performance,
        test_directory_scanning_performance,
        test_page_numbering_performance,
        test_small_batch_conversion_time,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            print(f"\n{test.__name__.replace('_', ' ').title()}:")
            test()
            passed += 1
        except Exception as e:
            print(f"✗ {test.__name__} failed: {e}")
            failed += 1

    print("\n" + "=" * 60)
    print("Performance Tests Summary:")
    print(f"✓ Passed: {passed}")
    print(f"✗ Failed: {failed}")
    print(f"Total: {passed + failed}")

    if failed > 0:
        print("\nSome performance tests failed or showed warnings!")
        sys.exit(1)
    else:
        print("\nAll performance tests completed successfully!")
        sys.exit(0)


if __name__ == "__main__":
    main()
