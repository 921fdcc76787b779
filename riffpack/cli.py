from __future__ import annotations

import argparse
import os
import sys
import time
from typing import List, Optional

from riffpack.constants import DEFAULT_DECRYPTED_PATH, DEFAULT_PACK_PATH, IV_SIZE, KDF_SALT
from riffpack.discovery import scan_projects
from riffpack.encryption import derive_key
from riffpack.errors import RiffPackError
from riffpack.pack import build_manifest, decrypt_pack_file, extract_riffs, unpack, write_pack


def _hex_sample(data: bytes, n: int = 8) -> str:
    return " ".join(f"{b:02X}" for b in data[:n])


def _file_head(path: str, offset: int, n: int = 8) -> bytes:
    with open(path, "rb") as fh:
        fh.seek(offset)
        return fh.read(n)


def cmd_pack(
    source: str,
    password: str,
    *,
    output: str = DEFAULT_PACK_PATH,
    decrypted_output: Optional[str] = DEFAULT_DECRYPTED_PATH,
    quiet: bool = False,
) -> bool:
    """Scan ``source`` for riff projects and write an encrypted riff pack.

    Args:
        source: Directory holding ``RiffCollection<BPM>BPM`` projects.
        password: Pack password; the key is derived with PBKDF2-HMAC-SHA512.
        output: Path of the encrypted pack.
        decrypted_output: Where to write the decrypted (still zipped) copy for
            inspection. None skips it.
        quiet: Limit output to the summary and errors.

    Returns:
        True when the pack was written. Skipped projects/riffs do not fail the run.
    """
    def say(msg: str) -> None:
        if not quiet:
            print(msg)

    t0 = time.time()
    say(f"Searching for projects in {source}...")
    scan = scan_projects(source)
    for err in scan.errors:
        print(f"Warning: skipped {err}", file=sys.stderr)
    for project in scan.projects:
        say(f"  Found {project.bpm} BPM project with {len(project.riffs)} riff(s)")

    manifest, payloads = build_manifest(scan.projects)

    say("Writing riff pack...")
    say("  Generating key...")
    say(f"    Salt length: {len(KDF_SALT)} bytes")
    key = derive_key(password)
    say(f"    Generated {len(key)} bytes.")

    os.makedirs(os.path.dirname(output) or ".", exist_ok=True)
    summary = write_pack(output, manifest, payloads, key)
    say(f"    Wrote manifest and {summary.riff_count} riff(s)")
    say(f"    Wrote {summary.total_len} total bytes!")
    say(f"    IV sample: {_hex_sample(summary.iv)}")
    say(f"    Encrypted data sample: {_hex_sample(_file_head(output, IV_SIZE))}")

    if decrypted_output:
        say("Writing decrypted riff pack...")
        n = decrypt_pack_file(output, key, decrypted_output)
        say(f"  Wrote decrypted content ({n} bytes)...")
        say(f"    Decrypted data sample: {_hex_sample(_file_head(decrypted_output, 0))}")

    dt = max(0.000001, time.time() - t0)
    print(
        f"Done: {summary.riff_count} riffs from {len(scan.projects)} projects; "
        f"{len(scan.errors)} skipped; {summary.total_len} bytes in {dt:.1f}s -> {output}"
    )
    return True


def cmd_unpack(archive: str, password: str, *, outdir: str = ".", quiet: bool = False) -> bool:
    """Decrypt a riff pack and write its riffs under ``outdir``.

    Args:
        archive: Path to the encrypted pack.
        password: Pack password.
        outdir: Destination root; riffs land in ``RiffCollection<BPM>BPM/Render``.
        quiet: Limit output to the summary and errors.
    """
    t0 = time.time()
    if not quiet:
        print(" Generating key...", flush=True)
    key = derive_key(password)
    unpacked = unpack(archive, key)
    written = extract_riffs(unpacked, outdir)
    if not quiet:
        for path in written:
            print(f" unpacking: {path}")
    dt = max(0.000001, time.time() - t0)
    print(f"Done: extracted {len(written)}/{len(unpacked.manifest.riffs)} riffs in {dt:.1f}s")
    return True


def _run(fn, *args, **kwargs) -> None:
    try:
        fn(*args, **kwargs)
    except (RiffPackError, OSError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="riffpack",
        description="Pack riff projects into an encrypted riff pack",
        epilog="The pack is IV || AES-256-CBC(zip); the key is PBKDF2-HMAC-SHA512 of the password.",
    )
    ap.add_argument("source", help="Projects directory (contains RiffCollection<BPM>BPM folders)")
    ap.add_argument("password", help="Pack password")
    ap.add_argument("--output", default=DEFAULT_PACK_PATH, help=f"Encrypted pack path (default: {DEFAULT_PACK_PATH})")
    ap.add_argument(
        "--decrypted-output",
        default=DEFAULT_DECRYPTED_PATH,
        help=f"Decrypted zip copy path (default: {DEFAULT_DECRYPTED_PATH}); empty string skips it",
    )
    ap.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")
    args = ap.parse_args(argv)
    _run(
        cmd_pack,
        args.source,
        args.password,
        output=args.output,
        decrypted_output=args.decrypted_output or None,
        quiet=args.quiet,
    )


def unpack_main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(prog="riffpack-unpack", description="Extract riffs from an encrypted riff pack")
    ap.add_argument("archive", help="Riff pack path")
    ap.add_argument("password", help="Pack password")
    ap.add_argument("--outdir", default=".", help="Output directory")
    ap.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")
    args = ap.parse_args(argv)
    _run(cmd_unpack, args.archive, args.password, outdir=args.outdir, quiet=args.quiet)


if __name__ == "__main__":
    main()
