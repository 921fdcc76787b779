import uuid


# Container layout
MANIFEST_NAME = "manifest.json"

# Key derivation (PBKDF2-HMAC-SHA512). The salt is public and fixed.
KDF_ITERATIONS = 100_000
KDF_SALT = b"lis3a7u45yjhvnoliu7aswtnbvblwou7opna"
KEY_SIZE = 256 // 8

# AES block size; the IV is one block and leads the pack file
BLOCK_SIZE = 16
IV_SIZE = BLOCK_SIZE

STREAM_CHUNK_SIZE = 64 * 1024  # 64 KiB, multiple of BLOCK_SIZE


# Discovery
PROJECT_NAME_PREFIX = "RiffCollection"
PROJECT_NAME_SUFFIX = "BPM"
PROJECT_NAME_PATTERN = rf"^{PROJECT_NAME_PREFIX}(\d+){PROJECT_NAME_SUFFIX}$"
RIFF_NAME_PATTERN = r"^(\d+)~(\d+)~(\S*)~(\d?)$"
RENDER_DIR = "Render"
RIFF_SUFFIX = ".mp3"


# Output locations (relative to the working directory)
DEFAULT_PACK_PATH = "riff.pack"
DEFAULT_DECRYPTED_PATH = "decrypted_riff_pack/riff.pack.zip"


def new_riff_id() -> str:
    return str(uuid.uuid4())
