from dotenv import load_dotenv
from pathlib import Path
import os
import time

from dts_uff.config import ConversionConfig
from dts_uff.conversion import OutputFormat, SampleSlice, convert
from dts_uff.listing import list_tracks
from dts_uff.dts import DtsReader

load_dotenv()
data_path = Path(os.getenv("TEST_DATA_PATH_DTS"))
recording_path = data_path / "Bancairon_G1_training6_small"
tracks_path = recording_path / "tracks.txt"
output_path = data_path / "output"


def run_listing():
    """Print the track metadata"""
    listing = list_tracks(recording_path, tracks_path)
    print(listing.to_text())


def run_read():
    """Read and print a summary of each track"""
    reader = DtsReader(recording_path)
    for record in reader.records:
        data = reader.read_track(record.channel_index)
        print(record.file_path.name, record.metadata.description)
        print(data, data.time_series.min(), data.time_series.max())


def run_convert(output_format: OutputFormat):
    """Convert the whole recording and time it"""
    output_path.mkdir(exist_ok=True)
    uff_path = output_path / f"converted_{output_format.value}.uff"
    start = time.perf_counter()
    report = convert(recording_path, tracks_path, uff_path, output_format)
    print(f"Conversion took {time.perf_counter() - start:.2f} s")
    print(report.to_text())


def run_convert_slice():
    """Convert the start of each track with a single worker"""
    output_path.mkdir(exist_ok=True)
    uff_path = output_path / "converted_slice.uff"
    config = ConversionConfig(max_workers=1)
    report = convert(
        recording_path,
        tracks_path,
        uff_path,
        sample_slice=SampleSlice.from_str("0:1000"),
        config=config,
    )
    print(report.to_text())


if __name__ == "__main__":
    run_listing()
    run_read()
    run_convert(OutputFormat.ASCII)
    run_convert(OutputFormat.BINARY)
    run_convert_slice()
