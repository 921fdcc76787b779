"""
riffpack: encrypted riff pack builder.

Packs ``RiffCollection<BPM>BPM`` project folders into a single password-protected file:

- One zip container holding ``manifest.json`` plus one entry per riff, named by a random UUID.
- The zip is encrypted with AES-256-CBC (PKCS#7); the key is PBKDF2-HMAC-SHA512
  (100,000 iterations, fixed salt) of the password.
- On disk the pack is ``IV || ciphertext``; the 16-byte IV is fresh for every pack.

There is no integrity tag: a wrong password or a damaged file shows up as a padding
failure or an unreadable container.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "manifest",
    "container",
    "encryption",
    "discovery",
    "pack",
]

# Importable programmatic API lives in riffpack.pack (pack/unpack/extract_riffs) and
# the CLI functions in riffpack.cli (cmd_pack/cmd_unpack) which take normal parameters.
