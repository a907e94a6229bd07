"""
cli.py

Command line front end: generate fingerprints for wav files, add them to
a fingerprint collection, and match queries against it.
"""

import argparse
import contextlib
import logging
import os
import sys
import time
from collections.abc import Sequence
from typing import IO

import joblib  # type: ignore[import-untyped]
import psutil  # type: ignore[import-untyped]

from singerprint import __version__
from singerprint.core import analyzer, fingerprint_store, matcher
from singerprint.core.fingerprint import Fingerprint

time_clock = time.process_time
logger = logging.getLogger("singerprint")


def process_info() -> tuple[int, float]:
    """Resident memory (bytes) and user CPU time (s) of this process."""
    p = psutil.Process(os.getpid())
    return p.memory_info().rss, p.cpu_times().user


# for saving fingerprint files
def ensure_dir(dirname: str) -> None:
    """ ensure that the named directory exists """
    if len(dirname) and not os.path.exists(dirname):
        with contextlib.suppress(OSError):
            os.makedirs(dirname)


def output_path_for(filename: str, output: str | None, multiple: bool) -> str | None:
    """Where generate should write the fingerprint for filename.

    With several inputs, output is treated as a directory and each
    fingerprint lands in <output>/<basename>.json.
    """
    if not output:
        return None
    if not multiple:
        return output
    root = os.path.splitext(os.path.basename(filename))[0]
    return os.path.join(output, root + ".json")


def fingerprint_files(
    analyzer_obj: analyzer.Analyzer,
    filenames: Sequence[str],
    ncores: int = 1,
) -> list[Fingerprint]:
    """Fingerprint each file, in input order, over ncores processes.

    Workers get their own copy of analyzer_obj, so the duration
    counters are carried back and set on the parent here.
    """
    if ncores > 1 and len(filenames) > 1:
        count, totaldur = analyzer_obj.soundfilecount, analyzer_obj.soundfiletotaldur
        results = joblib.Parallel(n_jobs=ncores)(
            joblib.delayed(_fingerprint_and_duration)(analyzer_obj, filename)
            for filename in filenames
        )
        durations = [dur for _, dur in results]
        analyzer_obj.soundfilecount = count + len(results)
        analyzer_obj.soundfiletotaldur = totaldur + sum(durations)
        analyzer_obj.soundfiledur = durations[-1]
        return [fprint for fprint, _ in results]
    return [analyzer_obj.wavfile2fingerprint(filename) for filename in filenames]


def _fingerprint_and_duration(analyzer_obj: analyzer.Analyzer, filename: str) -> tuple[Fingerprint, float]:
    fprint = analyzer_obj.wavfile2fingerprint(filename)
    return fprint, analyzer_obj.soundfiledur


def do_cmd(
    cmd: str,
    analyzer_obj: analyzer.Analyzer | None,
    matcher_obj: matcher.FingerprintMatcher | None,
    files: Sequence[str],
    out: IO[str],
    output: str | None = None,
    name: str | None = None,
    ncores: int = 1,
) -> bool:
    """Run one command.  Return True if the collection was modified."""
    if cmd == 'generate':
        if analyzer_obj is None:
            raise ValueError("analyzer required for generate")
        multiple = len(files) > 1
        if output and multiple:
            ensure_dir(output)
        for filename, fprint in zip(files, fingerprint_files(analyzer_obj, files, ncores), strict=True):
            opfname = output_path_for(filename, output, multiple)
            if opfname:
                ensure_dir(os.path.split(opfname)[0])
                fingerprint_store.save_fingerprint(fprint, opfname)
                print(f"Generated fingerprint saved to: {opfname}", file=out)
            else:
                print(f"Fingerprint generated for: {filename}", file=out)
                print(f"{len(fprint.peaks)} peaks found", file=out)
        return False

    if matcher_obj is None:
        raise ValueError(f"fingerprint collection required for {cmd}")

    if cmd == 'add':
        if analyzer_obj is None:
            raise ValueError("analyzer required for add")
        if name is not None and len(files) != 1:
            raise ValueError("--name can only be used with a single input file")
        for filename, fprint in zip(files, fingerprint_files(analyzer_obj, files, ncores), strict=True):
            entry = name if name is not None else filename
            matcher_obj.add(entry, fprint)
            logger.debug(f"{time.ctime()} added {entry} ({len(fprint)} hashes)")
        return True

    elif cmd == 'match':
        if analyzer_obj is None:
            raise ValueError("analyzer required for match")
        for filename, fprint in zip(files, fingerprint_files(analyzer_obj, files, ncores), strict=True):
            match_name = matcher_obj.find_best_match(fprint)
            prefix = f"{filename}: " if len(files) > 1 else ""
            if match_name is not None:
                print(f"{prefix}Match found: {match_name}", file=out)
            else:
                print(f"{prefix}No match found", file=out)
        return False

    elif cmd == 'remove':
        for entry in files:
            matcher_obj.remove(entry)
        return True

    elif cmd == 'list':
        for line in matcher_obj.list():
            print(line, file=out)
        return False

    raise ValueError(f"unrecognized command: {cmd}")


# Command to separate out setting of analyzer parameters
def setup_analyzer(
    samplerate: int,
    window_size: int,
    hop_size: int | None,
    amp_threshold: float,
    fanout: int,
) -> analyzer.Analyzer:
    """Create a new analyzer object from command-line values"""
    if hop_size is None:
        # 50% overlap
        hop_size = window_size // 2
    return analyzer.Analyzer(
        sample_rate=samplerate,
        window_size=window_size,
        hop_size=hop_size,
        threshold=amp_threshold,
        fan_out=fanout,
    )


def setup_matcher(min_count: int, collection: dict[str, Fingerprint]) -> matcher.FingerprintMatcher:
    """Create a matcher holding every entry of collection"""
    matcher_obj = matcher.FingerprintMatcher(threshold=min_count)
    for entry, fprint in collection.items():
        matcher_obj.add(entry, fprint)
    return matcher_obj


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="singerprint",
        description=(
            "Landmark-based audio fingerprinting. 'generate' writes the fingerprint of each wav "
            "file, 'add' stores fingerprints in a collection file under a name, 'match' reports "
            "the stored entry that best matches each query, and 'list'/'remove' inspect and edit "
            "the collection."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"singerprint {__version__}",
        help="Show the program's version number and exit.",
    )
    parser.add_argument(
        "cmd",
        choices=["generate", "add", "match", "list", "remove"],
        help="Command to execute.",
    )
    parser.add_argument("-d", "--dbase", help="Fingerprint collection file (.json, .hdf or .pklz)")
    parser.add_argument("-o", "--output", help="Output fingerprint file (or directory, for several inputs)")
    parser.add_argument("--name", help="Name to store a single added fingerprint under (default: file path)")
    parser.add_argument(
        "-r", "--samplerate", type=int, default=analyzer.DEFAULT_SAMPLE_RATE,
        help="Expected sample rate of input files"
    )
    parser.add_argument(
        "--window-size", type=int, default=analyzer.DEFAULT_WINDOW_SIZE,
        help="FFT window length in samples"
    )
    parser.add_argument(
        "--hop-size", type=int, default=None,
        help="Samples between successive windows (default: half the window)"
    )
    parser.add_argument(
        "-A", "--amp-threshold", type=float, default=analyzer.DEFAULT_THRESHOLD,
        help="Minimum spectral magnitude for a landmark"
    )
    parser.add_argument(
        "-F", "--fanout", type=int, default=analyzer.DEFAULT_FAN_OUT,
        help="Max number of hash pairs per peak"
    )
    parser.add_argument(
        "-N", "--min-count", type=int, default=matcher.DEFAULT_THRESHOLD,
        help="A match needs more than this many common hashes"
    )
    parser.add_argument(
        "-H", "--ncores", type=int, default=1,
        help="Number of processes to use"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Set logging level to debug (default is warning)",
    )
    parser.add_argument("file", nargs="*", help="Wav files (or names, for remove) to process")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Create and parse the command-line arguments.

    Options may come before or after the input files.
    """
    parser = build_parser()
    return parser.parse_intermixed_args(argv)


def main(argv: Sequence[str] | None = None, out: IO[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    logging.getLogger().setLevel(logging.DEBUG if args.verbose else logging.WARNING)
    if out is None:
        out = sys.stdout

    initticks = time_clock()

    analyzer_obj = setup_analyzer(
        args.samplerate,
        args.window_size,
        args.hop_size,
        args.amp_threshold,
        args.fanout,
    ) if args.cmd in ["generate", "add", "match"] else None

    # Everything except generate works on a collection file
    if args.cmd != "generate":
        if not args.dbase:
            raise ValueError("dbase name must be provided if not generate")
        logger.debug(f"{time.ctime()} Reading collection {args.dbase}")
        matcher_obj = setup_matcher(args.min_count, fingerprint_store.load_database(args.dbase))
    else:
        matcher_obj = None

    dirty = do_cmd(args.cmd, analyzer_obj, matcher_obj, args.file, out,
                   output=args.output, name=args.name, ncores=args.ncores)

    elapsedtime = time_clock() - initticks
    if analyzer_obj and analyzer_obj.soundfiletotaldur > 0.:
        logger.debug("Processed "
                     + "%d files (%.1f s total dur) in %.1f s sec = %.3f x RT"
                     % (analyzer_obj.soundfilecount, analyzer_obj.soundfiletotaldur,
                        elapsedtime, (elapsedtime / analyzer_obj.soundfiletotaldur)))
    if logger.isEnabledFor(logging.DEBUG):
        rss, usrtime = process_info()
        logger.debug(f"{time.ctime()} physmem={rss} utime={usrtime}")

    # Save the collection if it has been modified
    if dirty and matcher_obj is not None:
        ensure_dir(os.path.split(args.dbase)[0])
        saved = fingerprint_store.save_database(matcher_obj.fingerprints, args.dbase)
        if args.cmd == "add":
            for entry in ([args.name] if args.name is not None else args.file):
                print(f"Added fingerprint for '{entry}' to database: {saved}", file=out)


if __name__ == '__main__':
    main()
