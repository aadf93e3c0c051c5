"""
Configuration constants for the card ingest tool.
"""
import re

# --- Volume Layout ---
MOUNT_ROOT = "/Volumes"
VOLUME_PREFIX = "Untitled"
DCIM_DIR = "DCIM"
# Camera-card directories follow the DCF "100XXXXX" convention
CARD_DIR_PREFIX = "100"

VIDEO_EXTS = {'.mp4'}

# --- Chapter Naming ---
# GoPro: GH010042.MP4 -> chapter 01 of recording 0042
CHAPTER_PATTERN = re.compile(r'(\d{2})(\d{4})')
# Nikon: DSC_0042.MP4 never splits, so it is always chapter 01
SINGLE_CHAPTER_PATTERN = re.compile(r'^DSC_(\d{4})$', re.IGNORECASE)

# --- Camera Identity ---
GOPRO_DIR_MARKER = "GOPRO"
NON_GOPRO_IDENTITY = "NikonZ30"

# GPMF telemetry substream
GPMF_CODEC_TAG = "gpmd"
# GoPro files carry video, audio, timecode, then telemetry
GPMF_DEFAULT_STREAM_INDEX = 3
DEVICE_NAME_START = b"DVNM"
DEVICE_NAME_END = b"STRM"
KLV_HEADER_SIZE = 4
DEVICE_NAME_MAX_LENGTH = 64
GPMF_SCAN_MAX_BYTES = 8 * 1024 * 1024  # 8 MB
GPMF_SCAN_TIMEOUT = 60.0  # seconds
GPMF_READ_CHUNK_SIZE = 64 * 1024

# --- Transfer ---
COPY_CHUNK_SIZE = 4 * 1024 * 1024  # 4 MB

# --- External Tools ---
FFMPEG_BIN = "ffmpeg"
FFPROBE_BIN = "ffprobe"
# Setting DEBUG in the environment prints merge commands before they run
DEBUG_ENV_VAR = "DEBUG"

# --- Organization ---
OUTPUT_EXT = ".MP4"
NAME_PATTERN = "{session}-{camera}"
SEQUENCE_SUFFIX = "-{sequence:04d}"
LOG_FILE_NAME = "ingest.log"
