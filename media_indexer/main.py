import argparse
import json
import logging
import queue
import sys
import threading
from pathlib import Path
from typing import Optional, TextIO

from tqdm import tqdm

from . import config
from .database.db import DBManager
from .database.ops import CatalogOperations
from .exceptions import ProtocolError
from .indexing.batch import BatchProcessor
from .indexing.worker import IndexerWorker
from .manager import IndexerManager
from .protocol import CompletedEvent, ErrorEvent, Event, ProgressEvent, is_terminal, parse_command

def setup_logging(verbose: bool, log_file: Optional[Path] = None, stream: TextIO = sys.stderr):
    """Sets up logging to the console and, optionally, a file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler(stream)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
        force=True,
    )

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Media Indexer: background scan & fingerprint of photo/video volumes")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")
    p.add_argument("--batch-size", type=int, default=config.BATCH_SIZE, help="Files read in parallel per batch")
    p.add_argument("--batch-delay", type=float, default=config.BATCH_DELAY_SEC, help="Seconds to wait between batches")

    sub = p.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Index a directory into a catalog database")
    scan.add_argument("src", type=Path, help="Directory to index")
    scan.add_argument("--volume-uuid", required=True, help="Identifier of the volume holding src")
    scan.add_argument("--mount-point", type=Path, default=None, help="Volume root (default: src)")
    scan.add_argument("--cache-dir", type=Path, default=None, help="Thumbnail/proxy cache directory (default: next to the DB)")
    scan.add_argument("--db", type=Path, default=None, help=f"SQLite catalog (default: src/{config.DEFAULT_DB_NAME})")

    sub.add_parser("serve", help="Speak the indexer protocol as JSON lines on stdin/stdout")

    return p.parse_args(argv)

def build_worker(args) -> IndexerWorker:
    processor = BatchProcessor(batch_size=args.batch_size, batch_delay=args.batch_delay)
    return IndexerWorker(processor=processor)

def run_scan(args) -> int:
    src_root = args.src.resolve()
    mount_point = (args.mount_point or src_root).resolve()
    db_path = args.db if args.db else src_root / config.DEFAULT_DB_NAME
    cache_dir = args.cache_dir if args.cache_dir else db_path.parent / "cache"

    logging.info("=== Media Indexer Started ===")
    logging.info(f"Source: {src_root}")
    logging.info(f"Volume: {args.volume_uuid} @ {mount_point}")

    with DBManager(db_path) as conn:
        manager = IndexerManager(CatalogOperations(conn), worker=build_worker(args))
        bar = tqdm(total=0, desc="Scanning", unit="file")

        def show(event: Event):
            if isinstance(event, ProgressEvent):
                bar.set_description("Indexing" if event.status == 'indexing' else "Scanning")
                bar.total = event.total
                bar.n = event.indexed
                bar.refresh()

        try:
            manager.start(str(src_root), args.volume_uuid, str(mount_point), str(cache_dir))
            try:
                result = manager.wait(on_event=show)
            except KeyboardInterrupt:
                logging.warning("Cancelling... (waiting for the current batch)")
                manager.cancel()
                result = manager.wait(on_event=show)
        finally:
            bar.close()
            manager.close()

    if isinstance(result, ErrorEvent):
        logging.error(f"Indexing failed: {result.error}")
        return 1
    if isinstance(result, CompletedEvent):
        logging.info(f"Indexed {result.indexed}/{result.total} files into {db_path}")
        return 0
    logging.warning(f"Indexing cancelled after {manager.state.indexed} files")
    return 1

def run_serve(args, stdin: TextIO = sys.stdin, stdout: TextIO = sys.stdout) -> int:
    """
    Reads one JSON command per line, writes one JSON event per line.
    On end of input the running session is allowed to finish.
    """
    worker = build_worker(args)
    done = threading.Event()

    def write(message: dict):
        stdout.write(json.dumps(message) + "\n")
        stdout.flush()

    def pump():
        while not (done.is_set() and worker.events.empty()):
            try:
                event = worker.events.get(timeout=0.1)
            except queue.Empty:
                continue
            write(event.to_message())
            if is_terminal(event):
                logging.debug(f"Session ended: {event.TYPE}")

    writer = threading.Thread(target=pump, name="indexer-events", daemon=True)
    writer.start()
    worker.start()

    for line in stdin:
        line = line.strip()
        if not line:
            continue
        try:
            worker.send(parse_command(json.loads(line)))
        except (ValueError, ProtocolError) as e:
            logging.warning(f"Ignoring bad command {line!r}: {e}")
            # Through the queue so the writer thread stays the only one on stdout
            worker.events.put(ErrorEvent.rejected(f"invalid command: {e}"))

    worker.stop(wait_for_session=True)
    done.set()
    writer.join()
    return 0

def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    try:
        if args.command == "scan":
            sys.exit(run_scan(args))
        sys.exit(run_serve(args))
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)
    except Exception:
        logging.exception("Fatal error during indexing.")
        sys.exit(1)

if __name__ == "__main__":
    main()
