"""
Command line interface

Two commands are available:

- convert: convert a DTS test folder to a UFF Type 58 file
- list: list the tracks of a DTS test folder

.. code-block:: text

    dts-uff convert -i test_folder -t tracks.txt -o test.uff -f binary
    dts-uff list -i test_folder -t tracks.txt
"""
from loguru import logger
from typing import Optional, Sequence
import argparse
import sys
from tqdm import tqdm

from dts_uff import __version__
from dts_uff.errors import DtsUffError
from dts_uff.config import ConversionConfig
from dts_uff.tracks import parse_track_selection
from dts_uff.conversion import ConversionProgress, OutputFormat, ProgressStage
from dts_uff.conversion import SampleSlice, convert
from dts_uff.listing import list_tracks


def build_parser() -> argparse.ArgumentParser:
    """Get the argument parser with the convert and list commands"""
    parser = argparse.ArgumentParser(
        prog="dts-uff",
        description="Convert DTS test folders (.dts and .chn files) to UFF Type 58.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v", "--verbose", action="store_true", help="show debug logging"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    convert_parser = commands.add_parser(
        "convert", parents=[common], help="convert to a UFF file"
    )
    convert_parser.add_argument(
        "-i", "--input", required=True, metavar="DIR", help="DTS test folder"
    )
    convert_parser.add_argument(
        "-t", "--tracks", required=True, metavar="TRACKS", help="track name file"
    )
    convert_parser.add_argument(
        "-o", "--output", required=True, metavar="OUT", help="UFF file to write"
    )
    convert_parser.add_argument(
        "-f",
        "--format",
        default="ascii",
        metavar="FORMAT",
        help="'ascii' or 'binary' (58b), default ascii",
    )
    convert_parser.add_argument(
        "--slice", metavar="START:END", help="write only samples START to END-1"
    )
    convert_parser.add_argument(
        "--tracks-filter",
        metavar="NAMES",
        help="comma separated track names to write, in the order to write them",
    )
    convert_parser.add_argument(
        "--workers", type=int, metavar="N", help="number of extraction threads"
    )
    convert_parser.add_argument(
        "--no-progress", action="store_true", help="do not show a progress bar"
    )

    list_parser = commands.add_parser(
        "list", parents=[common], help="list track metadata"
    )
    list_parser.add_argument(
        "-i", "--input", required=True, metavar="DIR", help="DTS test folder"
    )
    list_parser.add_argument(
        "-t", "--tracks", metavar="TRACKS", help="track name file"
    )
    return parser


def configure_logging(verbose: bool) -> None:
    """Log to stderr through tqdm so messages do not break the progress bar"""
    logger.remove()
    logger.add(
        lambda msg: tqdm.write(msg, end="", file=sys.stderr),
        level="DEBUG" if verbose else "INFO",
        colorize=sys.stderr.isatty(),
    )


class ProgressBar:
    """Render conversion progress events with tqdm"""

    def __init__(self, disable: bool = False):
        self.disable = disable
        self.pbar: Optional[tqdm] = None

    def __call__(self, update: ConversionProgress) -> None:
        if update.stage == ProgressStage.STARTED:
            self.pbar = tqdm(
                total=update.total, unit="track", desc="Converting", disable=self.disable
            )
        elif update.stage == ProgressStage.ADVANCED and self.pbar is not None:
            self.pbar.set_postfix_str(update.track_name or "")
            self.pbar.update(1)
        elif update.stage == ProgressStage.FINISHED:
            self.close()

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None


def run_convert(args: argparse.Namespace) -> None:
    output_format = OutputFormat.from_str(args.format)
    sample_slice = None
    if args.slice is not None:
        sample_slice = SampleSlice.from_str(args.slice)
    track_filter = None
    if args.tracks_filter is not None:
        track_filter = parse_track_selection(args.tracks_filter)
    config = ConversionConfig.from_env(max_workers=args.workers)

    progress = ProgressBar(disable=args.no_progress)
    try:
        report = convert(
            args.input,
            args.tracks,
            args.output,
            output_format=output_format,
            sample_slice=sample_slice,
            track_filter=track_filter,
            config=config,
            progress=progress,
        )
    finally:
        progress.close()
    print(f"Converted '{args.input}' to {output_format.value} UFF '{args.output}'")
    print(report.to_text())


def run_list(args: argparse.Namespace) -> None:
    listing = list_tracks(args.input, args.tracks)
    print(listing.to_text())


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Run the command line interface

    Parameters
    ----------
    argv : Optional[Sequence[str]], optional
        The arguments, by default None for sys.argv

    Returns
    -------
    int
        The exit status, 0 for success and 1 for an error
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    commands = {"convert": run_convert, "list": run_list}
    try:
        commands[args.command](args)
    except (DtsUffError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
