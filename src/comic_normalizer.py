#!/usr/bin/env python3
"""
ComicNorm - Normalizes PDF, CBZ and CBR comics into JPEG-only PDFs

This program scans a folder for comic files and rewrites each one as a PDF in
which every page is a single JPEG image. It repairs the usual problems found in
downloaded comics along the way.

For CBZ/CBR archives:
- Detects the real container (ZIP, RAR v4, RAR v5) from the file signature
- Renames archives whose extension lies about their content
- Extracts every entry into a flat scratch directory

For PDFs:
- Extracts the embedded raster images page by page

For every extracted entry:
- Keeps only files whose content is an image
- Converts non-JPEG images to JPEG, keeps JPEG data untouched
- Renumbers pages 001, 002, ... regardless of the original names

Features:
- Command line interface with an optional folder argument (prompted otherwise)
- One file at a time, each inside its own scratch directory
- A failing file never stops the batch; a summary is printed at the end
- Clean handling of Ctrl+C / SIGTERM (exit code 130)
"""

import argparse
import os
import shutil
import signal
import subprocess
import sys
import tempfile
import threading
import zipfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Iterator, List, Optional, Sequence, Tuple

__version__ = "2.0"

# Import libraries will be checked later to allow --help to work
fitz = None
Image = None

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


class ComicNormalizerError(Exception):
    """Base class for every error raised while normalizing comics"""


class PreconditionError(ComicNormalizerError):
    """Missing dependency or unusable input directory; nothing gets processed"""


class ExtractionError(ComicNormalizerError):
    """Unsupported file type or failing decoder"""


class NoContentError(ComicNormalizerError):
    """The source yielded no image, or no page survived PDF wrapping"""


class AssemblyError(ComicNormalizerError):
    """Single-page PDFs could not be merged into the output document"""


class RenameVerificationError(ComicNormalizerError):
    """An extension correction was attempted but the renamed file is missing"""


class ConversionCancelled(ComicNormalizerError):
    """Raised between pipeline stages once an interrupt has been received"""


def check_dependencies(required_tools: Sequence[str] = ()):
    """
    Import required libraries and make sure external tools are on the PATH.
    Raises PreconditionError listing everything that is missing.
    """
    global fitz, Image

    missing_packages = []
    try:
        import fitz as _fitz
        fitz = _fitz
    except ImportError:
        missing_packages.append("PyMuPDF (pip install PyMuPDF)")

    try:
        from PIL import Image as _Image
        Image = _Image
    except ImportError:
        missing_packages.append("Pillow (pip install Pillow)")

    if missing_packages:
        raise PreconditionError(
            f"Missing required Python packages: {', '.join(missing_packages)}"
        )

    missing_cmds = [cmd for cmd in required_tools if shutil.which(cmd) is None]
    if missing_cmds:
        raise PreconditionError(
            f"Missing required commands: {' '.join(missing_cmds)}\n"
            "Please install them before proceeding."
        )


def validate_dependencies():
    """Validate that dependencies have been loaded"""
    if fitz is None or Image is None:
        raise RuntimeError("Dependencies not properly loaded. Call check_dependencies() first.")


class Notifier(ABC):
    """
    User-facing side of a batch run.

    Front ends implement the four message classes: blocking errors, transient
    warnings, informational messages and a directory picker. progress() is a
    plain status line and may be ignored.
    """

    @abstractmethod
    def error(self, message: str) -> None:
        pass

    @abstractmethod
    def warning(self, message: str, timeout: int = 3) -> None:
        pass

    @abstractmethod
    def info(self, message: str) -> None:
        pass

    def progress(self, message: str) -> None:
        pass

    @abstractmethod
    def pick_directory(self) -> Optional[str]:
        pass


class ConsoleNotifier(Notifier):
    """Notifier printing to the terminal and prompting on stdin"""

    def __init__(self, verbose: bool = False, stream=None, err_stream=None, input_func=input):
        self.verbose = verbose
        self.stream = stream if stream is not None else sys.stdout
        self.err_stream = err_stream if err_stream is not None else sys.stderr
        self.input_func = input_func

    def error(self, message: str) -> None:
        print(f"Error: {message}", file=self.err_stream)

    def warning(self, message: str, timeout: int = 3) -> None:
        # Nothing to dismiss on a terminal, the timeout only matters for popups
        print(f"Warning: {message}", file=self.err_stream)

    def info(self, message: str) -> None:
        print(message, file=self.stream)

    def progress(self, message: str) -> None:
        if self.verbose:
            print(f"  {message}", file=self.stream)

    def pick_directory(self) -> Optional[str]:
        try:
            answer = self.input_func("Folder containing PDF/CBZ/CBR files: ")
        except EOFError:
            return None
        answer = answer.strip()
        return answer or None


@dataclass
class ConverterConfig:
    """Runtime options for a batch run"""
    quality: int = 95
    required_tools: Tuple[str, ...] = ()
    rar_decoders: Tuple[str, ...] = ("unrar", "7z")
    skip_existing: bool = False
    verbose: bool = False
    warning_timeout: int = 3


class CancellationToken:
    """Flag set by signal handlers and polled between pipeline stages"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self) -> None:
        if self._event.is_set():
            raise ConversionCancelled("Conversion cancelled")


@contextmanager
def handle_interrupts(token: CancellationToken) -> Iterator[CancellationToken]:
    """
    Route SIGINT/SIGTERM to the cancellation token while the batch runs.
    A second signal falls back to KeyboardInterrupt so a stuck stage can still be stopped.
    """
    def handler(signum, frame):
        if token.cancelled:
            raise KeyboardInterrupt
        token.cancel()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[signum] = signal.signal(signum, handler)
        except ValueError:
            # Not in the main thread; interrupts keep their default behavior
            pass
    try:
        yield token
    finally:
        for signum, old_handler in previous.items():
            signal.signal(signum, old_handler)


# ---------------------------------------------------------------------------
# Signature sniffing and extension reconciliation
# ---------------------------------------------------------------------------

SIGNATURE_LENGTH = 16
ZIP_SIGNATURES = (b"PK\x03\x04", b"PK\x03\x06", b"PK\x03\x08")
RAR4_SIGNATURE = b"Rar!"
RAR5_SIGNATURE = b"\x06\x00\x00\x00Rar!\x1a\x07\x01\x00"


class ContainerType(Enum):
    ZIP = "zip"
    RAR4 = "rar4"
    RAR5 = "rar5"
    UNKNOWN = "unknown"

    @property
    def is_rar(self) -> bool:
        return self in (ContainerType.RAR4, ContainerType.RAR5)


def classify_signature(header: bytes) -> ContainerType:
    """Classify a file header without looking at any file name"""
    if header.startswith(ZIP_SIGNATURES):
        return ContainerType.ZIP
    if header.startswith(RAR4_SIGNATURE):
        return ContainerType.RAR4
    if header.startswith(RAR5_SIGNATURE):
        return ContainerType.RAR5
    return ContainerType.UNKNOWN


def sniff_container(path: Path, notifier: Optional[Notifier] = None) -> ContainerType:
    """
    Read the first bytes of a file and return its real container type.
    An unreadable file is reported as a warning and classified UNKNOWN.
    """
    try:
        with open(path, "rb") as f:
            header = f.read(SIGNATURE_LENGTH)
    except OSError as e:
        if notifier is not None:
            notifier.warning(f"Could not read file header of '{Path(path).name}': {e}")
        return ContainerType.UNKNOWN
    return classify_signature(header)


@dataclass
class SourceFile:
    """A comic file found in the input directory"""
    path: Path
    sniffed_type: ContainerType = ContainerType.UNKNOWN

    @property
    def extension(self) -> str:
        return self.path.suffix[1:]

    @property
    def base_name(self) -> str:
        return self.path.stem

    @property
    def directory(self) -> Path:
        return self.path.parent


RECONCILED_EXTENSIONS = ("cbz", "cbr")


def reconcile_extension(source: SourceFile, notifier: Notifier, timeout: int = 3) -> SourceFile:
    """
    Make a CBZ/CBR extension agree with the archive's real signature.

    Returns the source to use for the next stages: the same object when nothing
    had to change, or a new SourceFile pointing at the renamed file.
    Raises RenameVerificationError when the renamed file cannot be found.
    """
    if source.extension not in RECONCILED_EXTENSIONS:
        return source

    source.sniffed_type = sniff_container(source.path, notifier)
    kind = source.sniffed_type

    if kind is ContainerType.ZIP and source.extension == "cbr":
        target_ext, label = "cbz", "a ZIP (CBZ)"
    elif kind.is_rar and source.extension == "cbz":
        target_ext = "cbr"
        label = "a RAR5 (CBR)" if kind is ContainerType.RAR5 else "a RAR (CBR)"
    else:
        return source

    new_path = source.path.with_name(f"{source.base_name}.{target_ext}")
    notifier.warning(
        f"File '{source.path.name}' is {label} with {source.extension.upper()} extension.\n"
        f"Renaming to '{new_path.name}'.",
        timeout=timeout,
    )
    try:
        os.replace(source.path, new_path)
    except OSError as e:
        raise RenameVerificationError(
            f"Could not rename '{source.path.name}' to '{new_path.name}': {e}\nSkipping this file."
        )

    if not new_path.exists():
        raise RenameVerificationError(f"Renamed file '{new_path.name}' not found.\nSkipping this file.")

    return SourceFile(new_path, kind)


# ---------------------------------------------------------------------------
# Working set
# ---------------------------------------------------------------------------

@dataclass
class WorkingSet:
    """Scratch directories owned by one file's conversion"""
    root: Path
    raw_dir: Path = field(init=False)
    pages_dir: Path = field(init=False)
    pdf_dir: Path = field(init=False)

    def __post_init__(self):
        self.raw_dir = self.root / "raw"
        self.pages_dir = self.root / "pages"
        self.pdf_dir = self.root / "pdf"
        for directory in (self.raw_dir, self.pages_dir, self.pdf_dir):
            directory.mkdir(parents=True, exist_ok=True)


@contextmanager
def working_set(source: SourceFile) -> Iterator[WorkingSet]:
    """
    Create a scratch directory beside the source file and always remove it.
    Living in the same directory keeps the final move of the output a rename.
    """
    root = Path(tempfile.mkdtemp(prefix=f"{source.base_name}_images_", dir=source.directory))
    try:
        yield WorkingSet(root)
    finally:
        shutil.rmtree(root, ignore_errors=True)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class ArchiveExtractor:
    """Extracts page images from PDF, CBZ and CBR files into a flat directory"""

    RAR_DECODERS = ("unrar", "7z")

    def __init__(self, rar_decoders: Sequence[str] = RAR_DECODERS):
        self.rar_decoders = tuple(rar_decoders)
        self._rar_decoder: Optional[Tuple[str, str]] = None
        self._rar_resolved = False

    def resolve_rar_decoder(self) -> Optional[Tuple[str, str]]:
        """
        Return (name, executable) of the first available RAR decoder.
        The lookup runs once; later calls reuse the cached answer.
        """
        if not self._rar_resolved:
            for name in self.rar_decoders:
                executable = shutil.which(name)
                if executable:
                    self._rar_decoder = (name, executable)
                    break
            self._rar_resolved = True
        return self._rar_decoder

    def extract(self, source: SourceFile, dest: Path) -> None:
        """Dispatch on the (reconciled) extension"""
        ext = source.extension
        if ext == "pdf":
            self.extract_pdf(source.path, dest)
        elif ext == "cbz":
            self.extract_zip(source.path, dest)
        elif ext == "cbr":
            self.extract_rar(source.path, dest)
        else:
            raise ExtractionError(f"Unsupported file type: .{ext}")

    def extract_pdf(self, path: Path, dest: Path) -> None:
        """Write every image drawn on every page in its native encoding, page by page"""
        validate_dependencies()
        try:
            pdf_doc = fitz.open(str(path))
        except Exception as e:
            raise ExtractionError(f"Failed to extract images from: {path.name} ({e})")

        try:
            for page_num in range(len(pdf_doc)):
                page = pdf_doc[page_num]
                for img_index, img in enumerate(page.get_images(full=True)):
                    # A repeated page reuses one image object; it is still a page of its own
                    base_image = pdf_doc.extract_image(img[0])
                    if not base_image:
                        continue
                    img_path = dest / f"img-{page_num + 1:05d}-{img_index:03d}.{base_image['ext']}"
                    with open(img_path, "wb") as img_file:
                        img_file.write(base_image["image"])
        except Exception as e:
            raise ExtractionError(f"Failed to extract images from: {path.name} ({e})")
        finally:
            pdf_doc.close()

    def extract_zip(self, path: Path, dest: Path) -> None:
        """Extract all entries without their directories (later duplicates win)"""
        try:
            with zipfile.ZipFile(path) as archive:
                for info in archive.infolist():
                    if info.is_dir():
                        continue
                    name = PurePosixPath(info.filename.replace("\\", "/")).name
                    if name in ("", ".", ".."):
                        continue
                    with archive.open(info) as src, open(dest / name, "wb") as dst:
                        shutil.copyfileobj(src, dst)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, RuntimeError, OSError, EOFError) as e:
            raise ExtractionError(f"Failed to extract CBZ: {path.name} ({e})")

    def build_rar_command(self, decoder: str, executable: str, path: Path) -> List[str]:
        if decoder == "unrar":
            return [executable, "e", "-inul", "-o+", str(path)]
        # 7z and compatible command lines
        return [executable, "e", "-y", "-bso0", "-bsp0", str(path)]

    def extract_rar(self, path: Path, dest: Path) -> None:
        """Run the preferred external RAR decoder inside the destination directory"""
        resolved = self.resolve_rar_decoder()
        if resolved is None:
            raise ExtractionError(
                f"Neither {' nor '.join(self.rar_decoders)} available for: {path.name}"
            )
        decoder, executable = resolved
        cmd = self.build_rar_command(decoder, executable, path.resolve())
        try:
            result = subprocess.run(cmd, cwd=str(dest), capture_output=True)
        except OSError as e:
            raise ExtractionError(f"Failed to extract CBR: {path.name} ({e})")
        if result.returncode != 0:
            raise ExtractionError(
                f"Failed to extract CBR: {path.name} ({decoder} exited with code {result.returncode})"
            )


# ---------------------------------------------------------------------------
# Page normalization
# ---------------------------------------------------------------------------

JPEG_FORMATS = ("JPEG", "MPO")


def page_name(counter: int) -> str:
    """Zero-padded page file name; widens naturally past 999"""
    return f"{counter:03d}.jpg"


def page_number(path: Path) -> int:
    return int(path.name.split(".", 1)[0])


class PageNormalizer:
    """Turns the extracted entries into 001.jpg, 002.jpg, ..."""

    def __init__(self, quality: int = 95):
        self.quality = quality

    def classify(self, path: Path) -> Optional[str]:
        """Return the image format detected from content, or None for non-images"""
        validate_dependencies()
        try:
            with Image.open(path) as img:
                image_format = img.format
                img.verify()
            return image_format
        except Exception:
            return None

    def to_jpeg_mode(self, img):
        """Convert an image to a mode JPEG can store, flattening transparency on white"""
        if img.mode == "P":
            img = img.convert("RGBA" if "transparency" in img.info else "RGB")
        if img.mode in ("RGBA", "LA", "PA"):
            rgba = img.convert("RGBA")
            background = Image.new("RGB", img.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[-1])
            return background
        if img.mode == "1":
            return img.convert("L")
        if img.mode not in ("RGB", "L", "CMYK"):
            return img.convert("RGB")
        return img

    def transcode(self, src: Path, dest: Path) -> None:
        with Image.open(src) as img:
            img.load()
            self.to_jpeg_mode(img).save(dest, "JPEG", quality=self.quality)

    def normalize(self, raw_dir: Path, pages_dir: Path) -> List[Path]:
        """
        Number the image entries of raw_dir in name order and store them as JPEG.
        Returns the page paths; entries that fail conversion are dropped and do
        not use a page number. Raises NoContentError when nothing was accepted.
        """
        pages = []
        counter = 1
        for entry in sorted(p for p in raw_dir.iterdir() if p.is_file()):
            image_format = self.classify(entry)
            if image_format is None:
                continue

            target = pages_dir / page_name(counter)
            if image_format in JPEG_FORMATS:
                shutil.move(str(entry), str(target))
            else:
                try:
                    self.transcode(entry, target)
                except Exception:
                    if target.exists():
                        target.unlink()
                    continue
                entry.unlink()

            pages.append(target)
            counter += 1

        if not pages:
            raise NoContentError("No images found")
        return pages


# ---------------------------------------------------------------------------
# PDF assembly
# ---------------------------------------------------------------------------

class PdfAssembler:
    """Wraps each page into its own PDF, then concatenates them in page order"""

    def __init__(self, notifier: Notifier, warning_timeout: int = 3):
        self.notifier = notifier
        self.warning_timeout = warning_timeout

    def wrap_page(self, image_path: Path, pdf_path: Path) -> None:
        """
        Store one JPEG on a page of its own natural size (one pixel per point).
        The JPEG stream is embedded as-is, it is never decoded and re-encoded.
        """
        validate_dependencies()
        with Image.open(image_path) as img:
            width, height = img.size

        page_doc = fitz.open()
        try:
            page = page_doc.new_page(width=width, height=height)
            page.insert_image(page.rect, filename=str(image_path))
            page_doc.save(str(pdf_path))
        finally:
            page_doc.close()

    def merge(self, page_pdfs: List[Path], merged_path: Path) -> None:
        validate_dependencies()
        output = fitz.open()
        try:
            for pdf_path in page_pdfs:
                with fitz.open(str(pdf_path)) as part:
                    output.insert_pdf(part)
            output.save(str(merged_path), garbage=3, deflate=True)
        finally:
            output.close()

    def assemble(self, pages: List[Path], work: WorkingSet, output_path: Path) -> Path:
        """
        Build output_path from the numbered pages.

        Pages that cannot be wrapped are reported and left out. Raises
        NoContentError when no page could be wrapped and AssemblyError when the
        merge fails; in both cases output_path is left untouched.
        """
        page_pdfs = []
        try:
            for image_path in sorted(pages, key=page_number):
                pdf_path = work.pdf_dir / f"{image_path.name}.pdf"
                try:
                    self.wrap_page(image_path, pdf_path)
                except Exception as e:
                    self.notifier.warning(
                        f"Failed to convert image to PDF: {image_path.name} ({e})",
                        timeout=self.warning_timeout,
                    )
                    continue
                page_pdfs.append(pdf_path)

            if not page_pdfs:
                raise NoContentError("No PDF files created")

            merged_path = work.root / "merged.pdf"
            try:
                self.merge(page_pdfs, merged_path)
                os.replace(merged_path, output_path)
            except Exception as e:
                raise AssemblyError(f"Failed to merge PDFs ({e})")
        finally:
            for pdf_path in page_pdfs:
                if pdf_path.exists():
                    pdf_path.unlink()

        return output_path


# ---------------------------------------------------------------------------
# Per-file pipeline and batch driver
# ---------------------------------------------------------------------------

class FileOutcome(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ComicNormalizer:
    """Runs reconcile -> extract -> normalize -> assemble for one file"""

    def __init__(self, source_path, notifier: Notifier, config: Optional[ConverterConfig] = None,
                 extractor: Optional[ArchiveExtractor] = None,
                 cancel_token: Optional[CancellationToken] = None):
        self.config = config or ConverterConfig()
        self.source = SourceFile(Path(source_path))
        self.notifier = notifier
        self.extractor = extractor or ArchiveExtractor(self.config.rar_decoders)
        self.normalizer = PageNormalizer(self.config.quality)
        self.assembler = PdfAssembler(notifier, self.config.warning_timeout)
        self.cancel_token = cancel_token or CancellationToken()

        if not self.source.path.exists():
            raise FileNotFoundError(f"Source file not found: {source_path}")

    def get_output_path(self) -> Path:
        return self.source.directory / f"{self.source.base_name}.pdf"

    def convert(self) -> Path:
        """
        Convert the source file and return the output PDF path.
        Raises a ComicNormalizerError subclass when the file cannot be converted.
        """
        validate_dependencies()
        self.cancel_token.check()

        self.source = reconcile_extension(self.source, self.notifier, self.config.warning_timeout)
        name = self.source.path.name

        with working_set(self.source) as work:
            self.notifier.progress(f"Extracting {name}")
            self.extractor.extract(self.source, work.raw_dir)
            self.cancel_token.check()

            self.notifier.progress("Normalizing pages")
            try:
                pages = self.normalizer.normalize(work.raw_dir, work.pages_dir)
            except NoContentError:
                raise NoContentError(f"No images found in: {name}")
            self.notifier.progress(f"{len(pages)} pages ready")
            self.cancel_token.check()

            self.notifier.progress("Assembling PDF")
            try:
                return self.assembler.assemble(pages, work, self.get_output_path())
            except NoContentError:
                raise NoContentError(f"No PDF files created for: {name}")
            except AssemblyError as e:
                raise AssemblyError(f"Failed to merge PDFs for: {name}\n{e}")


@dataclass
class BatchResult:
    """Aggregate counts of one batch run"""
    found: int = 0
    processed: int = 0
    failed: List[Tuple[str, str]] = field(default_factory=list)
    cancelled: bool = False


class BatchProcessor:
    """Bulk processing manager for one directory"""

    SUPPORTED_EXTENSIONS = (".pdf", ".cbz", ".cbr")

    def __init__(self, source_dir, notifier: Notifier, config: Optional[ConverterConfig] = None,
                 cancel_token: Optional[CancellationToken] = None):
        self.source_dir = Path(source_dir)
        self.notifier = notifier
        self.config = config or ConverterConfig()
        self.cancel_token = cancel_token or CancellationToken()
        # Shared so the RAR decoder lookup happens once per batch
        self.extractor = ArchiveExtractor(self.config.rar_decoders)
        self.failed_files: List[Tuple[str, str]] = []

        if not self.source_dir.is_dir():
            raise PreconditionError(f"Selected path is not a valid directory: {source_dir}")

    def find_comic_files(self) -> List[Path]:
        """Find files with an exact .pdf/.cbz/.cbr suffix (case-sensitive)"""
        try:
            entries = list(self.source_dir.iterdir())
        except OSError as e:
            raise PreconditionError(f"Unable to access the directory: {self.source_dir} ({e})")

        comic_files = [
            p for p in entries
            if p.suffix in self.SUPPORTED_EXTENSIONS and p.is_file()
        ]
        comic_files.sort(key=lambda x: x.name)
        return comic_files

    def get_output_path(self, source_file: Path) -> Path:
        return source_file.parent / f"{source_file.stem}.pdf"

    def report_failure(self, error: ComicNormalizerError) -> None:
        timeout = self.config.warning_timeout
        if isinstance(error, (RenameVerificationError, AssemblyError)):
            self.notifier.error(str(error))
        else:
            self.notifier.warning(str(error), timeout=timeout)

    def process_file(self, source_file: Path) -> FileOutcome:
        """Run the whole pipeline for one file; errors are reported, never raised"""
        if self.config.skip_existing and source_file.suffix != ".pdf":
            output_path = self.get_output_path(source_file)
            if output_path.exists():
                self.notifier.progress(f"Skipping - output file already exists: {output_path.name}")
                return FileOutcome.SUCCESS

        try:
            converter = ComicNormalizer(source_file, self.notifier, self.config,
                                        extractor=self.extractor, cancel_token=self.cancel_token)
            output_path = converter.convert()
        except ConversionCancelled:
            return FileOutcome.CANCELLED
        except ComicNormalizerError as e:
            # Decoders killed by the same Ctrl+C fail too; that is not worth a report
            if self.cancel_token.cancelled:
                return FileOutcome.CANCELLED
            self.report_failure(e)
            self.failed_files.append((source_file.name, str(e)))
            return FileOutcome.FAILED
        except OSError as e:
            if self.cancel_token.cancelled:
                return FileOutcome.CANCELLED
            # Missing source, unwritable directory for the scratch space, ...
            self.notifier.warning(f"Failed to process {source_file.name}: {e}",
                                  timeout=self.config.warning_timeout)
            self.failed_files.append((source_file.name, str(e)))
            return FileOutcome.FAILED

        self.notifier.progress(f"Created {output_path.name}")
        return FileOutcome.SUCCESS

    def process_all(self) -> BatchResult:
        """Process every comic file of the directory, one after the other"""
        comic_files = self.find_comic_files()
        result = BatchResult(found=len(comic_files))
        self.failed_files = result.failed

        if not comic_files:
            self.notifier.info("No PDF, CBZ, or CBR files found in the selected folder.")
            return result

        for i, source_file in enumerate(comic_files, 1):
            if self.cancel_token.cancelled:
                result.cancelled = True
                break

            self.notifier.progress(f"[{i}/{len(comic_files)}] Processing: {source_file.name}")
            outcome = self.process_file(source_file)
            if outcome is FileOutcome.SUCCESS:
                result.processed += 1
            elif outcome is FileOutcome.CANCELLED:
                result.cancelled = True
                break

        # An interrupt during the last file ends the loop normally
        if result.cancelled or self.cancel_token.cancelled:
            result.cancelled = True
            return result

        if result.processed > 0:
            self.notifier.info(
                f"Conversion completed.\nFiles found: {result.found}\n"
                f"Files processed successfully: {result.processed}"
            )
        else:
            self.notifier.warning(
                f"No files were processed successfully.\nFiles found: {result.found}",
                timeout=self.config.warning_timeout,
            )
        return result


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

def select_directory(directory: Optional[str], notifier: Notifier) -> Path:
    """Use the given folder or ask the notifier for one"""
    selected = directory if directory else notifier.pick_directory()
    if not selected:
        raise PreconditionError("No folder selected.")

    path = Path(selected).expanduser()
    if not path.is_dir():
        raise PreconditionError("Selected path is not a valid directory.")
    if not os.access(path, os.R_OK | os.W_OK | os.X_OK):
        raise PreconditionError(f"Unable to access the directory: {path}")
    return path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Normalize PDF, CBZ and CBR comics into PDFs made of JPEG pages.",
        epilog="Examples:\n"
               "  %(prog)s ~/Comics/\n"
               "  %(prog)s --quality 90 --skip-existing ./downloads/\n"
               "  %(prog)s --require unrar ./comics/\n\n"
               "Without a folder argument the folder is asked for interactively.",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument('directory',
                        nargs='?',
                        help='Folder containing the PDF/CBZ/CBR files')
    parser.add_argument('--quality', '-q',
                        type=int,
                        default=95,
                        help='JPEG quality used when converting non-JPEG pages (1-100, default: 95)')
    parser.add_argument('--require',
                        action='append',
                        default=[],
                        metavar='TOOL',
                        help='External command that must be on the PATH before starting (repeatable)')
    parser.add_argument('--skip-existing',
                        action='store_true',
                        help='Skip CBZ/CBR files whose PDF already exists')
    parser.add_argument('--verbose', '-v',
                        action='store_true',
                        help='Print a line for every pipeline stage')
    parser.add_argument('--version',
                        action='version',
                        version=f'ComicNorm {__version__}')
    return parser


def main(argv=None, notifier: Optional[Notifier] = None) -> int:
    """Main entry point, returns the process exit code"""
    args = build_parser().parse_args(argv)
    config = ConverterConfig(
        quality=args.quality,
        required_tools=tuple(args.require),
        skip_existing=args.skip_existing,
        verbose=args.verbose,
    )
    notifier = notifier or ConsoleNotifier(verbose=config.verbose)

    if config.quality < 1 or config.quality > 100:
        notifier.error("Quality must be between 1 and 100")
        return EXIT_FAILURE

    token = CancellationToken()

    try:
        check_dependencies(config.required_tools)
        directory = select_directory(args.directory, notifier)
        processor = BatchProcessor(directory, notifier, config, cancel_token=token)
        with handle_interrupts(token):
            result = processor.process_all()
    except PreconditionError as e:
        notifier.error(str(e))
        return EXIT_FAILURE
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    except Exception as e:
        notifier.error(f"Script interrupted with exit code: {EXIT_FAILURE}\n{e}")
        return EXIT_FAILURE

    if result.cancelled:
        return EXIT_INTERRUPTED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
