"""
Shared fixtures for the ComicNorm tests: a recording notifier and small
generators for images, CBZ archives and PDFs.
"""

import io
import os
import sys
import zipfile
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))

import comic_normalizer
from comic_normalizer import Notifier

comic_normalizer.check_dependencies()

import fitz
from PIL import Image


class RecordingNotifier(Notifier):
    """Notifier keeping every message for later assertions"""

    def __init__(self, directory=None):
        self.errors = []
        self.warnings = []
        self.infos = []
        self.progress_lines = []
        self.directory = directory
        self.pick_calls = 0

    def error(self, message):
        self.errors.append(message)

    def warning(self, message, timeout=3):
        self.warnings.append(message)

    def info(self, message):
        self.infos.append(message)

    def progress(self, message):
        self.progress_lines.append(message)

    def pick_directory(self):
        self.pick_calls += 1
        return self.directory


def image_bytes(fmt='PNG', size=(40, 60), color=(200, 30, 30), mode='RGB'):
    """Encode a solid image in memory"""
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, fmt)
    return buf.getvalue()


def write_image(path, fmt='PNG', size=(40, 60), color=(200, 30, 30), mode='RGB'):
    data = image_bytes(fmt, size, color, mode)
    Path(path).write_bytes(data)
    return data


def make_cbz(path, entries):
    """Write a ZIP archive from a {name: bytes} mapping"""
    with zipfile.ZipFile(path, 'w') as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return Path(path)


def make_pdf(path, images):
    """Write a PDF with one page per image payload"""
    doc = fitz.open()
    try:
        for data in images:
            page = doc.new_page(width=200, height=300)
            page.insert_image(page.rect, stream=data)
        doc.save(str(path))
    finally:
        doc.close()
    return Path(path)


def pdf_images(path):
    """Return [(ext, bytes, (width, height))] for the first image of every page"""
    result = []
    with fitz.open(str(path)) as doc:
        for page in doc:
            xref = page.get_images(full=True)[0][0]
            base_image = doc.extract_image(xref)
            result.append((base_image['ext'], base_image['image'], (page.rect.width, page.rect.height)))
    return result


def leftover_work_dirs(directory):
    return [p for p in Path(directory).iterdir() if p.is_dir() and '_images_' in p.name]
